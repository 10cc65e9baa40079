"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Dict, List

import pendulum
import yaml
from pydantic import AliasChoices, BaseModel, Field, ValidationError, field_validator, model_validator

from .domain.availability import DEFAULT_SLOT_DURATION_MINUTES, DEFAULT_TIMEZONE
from .domain.exceptions import ConfigurationError, DoctorNotFoundError
from .domain.models import WeeklySchedule, Weekday, WorkingPeriod, parse_time_of_day


class PeriodConfig(BaseModel):
    """One working period, e.g. ``{start: "08:00", end: "12:00"}``."""
    # The clinic's stored documents use inicio/fim
    start: str = Field(validation_alias=AliasChoices("start", "inicio"))
    end: str = Field(validation_alias=AliasChoices("end", "fim"))

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, value: str) -> str:
        """Validate HH:MM format."""
        parse_time_of_day(value)
        return value.strip()

    @model_validator(mode="after")
    def validate_order(self) -> "PeriodConfig":
        """Ensure the period opens before it closes."""
        if parse_time_of_day(self.end) <= parse_time_of_day(self.start):
            raise ValueError(f"Working period {self.start}-{self.end} must end after it starts")
        return self

    def to_period(self) -> WorkingPeriod:
        return WorkingPeriod.parse(self.start, self.end)


class DefaultsConfig(BaseModel):
    """Clinic-wide defaults."""
    duration_minutes: int = DEFAULT_SLOT_DURATION_MINUTES
    min_lead_hours: int = 2

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure appointment duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("min_lead_hours")
    @classmethod
    def validate_lead(cls, value: int) -> int:
        if value < 0:
            raise ValueError("min_lead_hours must not be negative")
        return value


class DoctorConfig(BaseModel):
    """Doctor configuration."""
    id: str  # Document id in the appointment store
    name: str  # Used as alias
    crm: str = ""
    specialty: str = ""
    duration_minutes: int | None = None
    working_hours: Dict[str, List[PeriodConfig]] = Field(default_factory=dict)

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        if value is not None and value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("working_hours")
    @classmethod
    def validate_working_hours(
        cls,
        value: Dict[str, List[PeriodConfig]]
    ) -> Dict[str, List[PeriodConfig]]:
        """Ensure weekday keys are known and unique, and periods of a day do not overlap."""
        seen: set[Weekday] = set()

        for key, periods in value.items():
            weekday = Weekday.parse(key)
            if weekday in seen:
                raise ValueError(f"Weekday configured twice: {key}")
            seen.add(weekday)

            ordered = sorted(periods, key=lambda p: parse_time_of_day(p.start))
            for previous, current in zip(ordered, ordered[1:]):
                # Touching periods (12:00-14:00, 14:00-18:00) are fine
                if parse_time_of_day(current.start) < parse_time_of_day(previous.end):
                    raise ValueError(
                        f"Overlapping working periods on {key}: "
                        f"{previous.start}-{previous.end} and {current.start}-{current.end}"
                    )

        return value

    def schedule(self) -> WeeklySchedule:
        """Weekly schedule for the availability engine."""
        return WeeklySchedule.from_mapping({
            day: [period.to_period() for period in periods]
            for day, periods in self.working_hours.items()
        })

    def appointment_duration(self, defaults: DefaultsConfig) -> int:
        """Doctor's own appointment duration, or the clinic default."""
        if self.duration_minutes is not None:
            return self.duration_minutes
        return defaults.duration_minutes


class FirestoreConfig(BaseModel):
    """Connection settings for the Firestore appointment store."""
    project_id: str = ""
    database: str = "(default)"
    collection: str = "consultas"
    api_key: str = ""
    access_token: str = ""


class AppConfig(BaseModel):
    """Application configuration."""
    clinic_name: str = ""
    timezone: str = DEFAULT_TIMEZONE
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    doctors: List[DoctorConfig] = Field(default_factory=list)
    firestore: FirestoreConfig = Field(default_factory=FirestoreConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("doctors")
    @classmethod
    def validate_doctors(cls, value: List[DoctorConfig]) -> List[DoctorConfig]:
        """Ensure doctor ids and aliases are unique."""
        seen_ids: set[str] = set()
        seen_names: set[str] = set()
        for doctor in value:
            name_key = doctor.name.lower()
            if doctor.id in seen_ids:
                raise ValueError(f"Duplicate doctor id detected: {doctor.id}")
            if name_key in seen_names:
                raise ValueError(f"Duplicate doctor name detected: {doctor.name}")
            seen_ids.add(doctor.id)
            seen_names.add(name_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError("Config file must contain a mapping at the root level.")

        try:
            return cls(**data)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration in {config_path}:\n{exc}") from exc

    def find_doctor_by_id(self, doctor_id: str) -> DoctorConfig | None:
        for doctor in self.doctors:
            if doctor.id == doctor_id:
                return doctor
        return None

    def find_doctor_by_name(self, name: str) -> DoctorConfig | None:
        """Find a doctor by their name (alias)."""
        for doctor in self.doctors:
            if doctor.name.lower() == name.lower():
                return doctor
        return None

    def resolve_doctor(self, identifier: str) -> DoctorConfig:
        """
        Resolve a doctor identifier (document id or name/alias).

        Raises:
            DoctorNotFoundError: If identifier cannot be resolved
        """
        doctor = self.find_doctor_by_id(identifier) or self.find_doctor_by_name(identifier)
        if doctor:
            return doctor

        raise DoctorNotFoundError(
            f"Unknown doctor: '{identifier}'. "
            f"Use a configured doctor id or name."
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    config_path = Path.cwd() / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
