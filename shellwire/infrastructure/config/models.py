"""
Configuration models and data structures.

This module defines the configuration models for the session engine,
the terminal defaults, reconnect policy and logging.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")
HOST_KEY_POLICIES = ("accept-all", "tofu")


@dataclass
class SSHConfig:
    """SSH transport defaults applied to new connection profiles."""
    port: int = 22
    connect_timeout: float = 30.0
    keepalive_interval: float = 60.0
    host_key_policy: str = "accept-all"
    output_buffer_chunks: int = 256


@dataclass
class TerminalConfig:
    """Pseudo-terminal request parameters."""
    term_type: str = "xterm-256color"
    cols: int = 80
    rows: int = 24


@dataclass
class ReconnectConfig:
    """Reconnect backoff policy."""
    max_attempts: int = 5
    base_delay: float = 1.0


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False
    asyncssh_level: str = "WARNING"


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Shellwire"
    version: str = "0.1.0"
    debug: bool = False

    ssh: SSHConfig = field(default_factory=SSHConfig)
    terminal: TerminalConfig = field(default_factory=TerminalConfig)
    reconnect: ReconnectConfig = field(default_factory=ReconnectConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_ssh()
        self._validate_terminal()
        self._validate_reconnect()
        self._validate_logging()

    def _validate_ssh(self) -> None:
        if not (1 <= self.ssh.port <= 65535):
            raise ValueError(f"SSH port must be between 1 and 65535, got {self.ssh.port}")
        if self.ssh.connect_timeout <= 0:
            raise ValueError(f"SSH connect timeout must be positive, got {self.ssh.connect_timeout}")
        if self.ssh.keepalive_interval < 0:
            raise ValueError(
                f"SSH keepalive interval cannot be negative, got {self.ssh.keepalive_interval}")
        if self.ssh.host_key_policy not in HOST_KEY_POLICIES:
            raise ValueError(
                f"Host key policy must be one of {', '.join(HOST_KEY_POLICIES)}, "
                f"got {self.ssh.host_key_policy}")
        if self.ssh.output_buffer_chunks < 1:
            raise ValueError(
                f"Output buffer must hold at least one chunk, got {self.ssh.output_buffer_chunks}")

    def _validate_terminal(self) -> None:
        if not self.terminal.term_type:
            raise ValueError("Terminal type cannot be empty")
        if self.terminal.cols <= 0 or self.terminal.rows <= 0:
            raise ValueError(
                f"Terminal size must be positive, got {self.terminal.cols}x{self.terminal.rows}")

    def _validate_reconnect(self) -> None:
        if self.reconnect.max_attempts < 0:
            raise ValueError(
                f"Reconnect attempts cannot be negative, got {self.reconnect.max_attempts}")
        if self.reconnect.base_delay < 0:
            raise ValueError(
                f"Reconnect base delay cannot be negative, got {self.reconnect.base_delay}")

    def _validate_logging(self) -> None:
        for name, level in (("Log level", self.logging.level),
                            ("asyncssh log level", self.logging.asyncssh_level)):
            if level.upper() not in LOG_LEVELS:
                raise ValueError(f"{name} must be one of {', '.join(LOG_LEVELS)}, got {level}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Shellwire'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            ssh=SSHConfig(**data.get('ssh', {})),
            terminal=TerminalConfig(**data.get('terminal', {})),
            reconnect=ReconnectConfig(**data.get('reconnect', {})),
            logging=LoggingConfig(**data.get('logging', {})),
            config_file_path=data.get('config_file_path'),
        )
