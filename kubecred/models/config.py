"""
Configuration data models for the kubeconfig credential service.
"""
from dataclasses import dataclass
from datetime import timedelta


@dataclass
class Config:
    """Main configuration class containing all application settings."""
    
    # Database settings
    database_path: str = "data/kubecred.db"
    
    # Certificate settings
    cert_validity_days: int = 365
    rotation_threshold_days: int = 182
    key_size: int = 2048
    
    # API settings
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    
    # Application settings
    log_level: str = "INFO"
    log_file_path: str = "logs/kubecred.log"
    
    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()
    
    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.cert_validity_days, int) or self.cert_validity_days <= 0:
            raise ValueError("cert_validity_days must be a positive integer")
        
        if not isinstance(self.rotation_threshold_days, int) or self.rotation_threshold_days < 0:
            raise ValueError("rotation_threshold_days must be a non-negative integer")
        
        if not isinstance(self.key_size, int) or self.key_size <= 0:
            raise ValueError("key_size must be a positive integer")
        
        if not isinstance(self.api_port, int) or not (1 <= self.api_port <= 65535):
            raise ValueError("api_port must be an integer between 1 and 65535")
        
        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")
    
    @property
    def cert_validity(self) -> timedelta:
        return timedelta(days=self.cert_validity_days)
    
    @property
    def rotation_threshold(self) -> timedelta:
        return timedelta(days=self.rotation_threshold_days)
    
    @property
    def database_url(self) -> str:
        """SQLAlchemy URL for the configured database path."""
        if self.database_path.startswith(('sqlite://', 'postgresql://', 'mysql://')):
            return self.database_path
        return f"sqlite:///{self.database_path}"


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning
    
    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: list[ConfigValidationError]
    warnings: list[ConfigValidationError]
    
    def __post_init__(self):
        """Separate errors and warnings."""
        all_issues = self.errors + self.warnings
        self.errors = [e for e in all_issues if e.severity == "error"]
        self.warnings = [e for e in all_issues if e.severity == "warning"]
    
    def has_errors(self) -> bool:
        """Check if there are any validation errors."""
        return len(self.errors) > 0
    
    def has_warnings(self) -> bool:
        """Check if there are any validation warnings."""
        return len(self.warnings) > 0
    
    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []
        
        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")
        
        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")
        
        return "\n".join(lines) if lines else "Configuration is valid"
