"""
Type-safe configuration for the campaign canvas library using Pydantic Settings.

Values load from environment variables or a ``.env`` file.

Usage:
    from shared.config import config

    x = parent_x + config.canvas_x_gap
"""
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class CanvasConfig(BaseSettings):
    """
    Central configuration for canvas layout, the workflow REST API and logging.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ============================================================================
    # Canvas Layout
    # ============================================================================

    canvas_x_gap: float = Field(default=200, description="Horizontal distance between a parent node and its children")
    canvas_y_gap: float = Field(default=150, description="Vertical distance between sibling rows")
    canvas_insert_offset: float = Field(default=150, description="Vertical offset for nodes added interactively")
    canvas_default_x: float = Field(default=250, description="x of a node added with no parent selected")
    canvas_default_y: float = Field(default=150, description="y of the first node added to an empty canvas")

    # ============================================================================
    # Workflow REST API
    # ============================================================================

    workflow_api_base_url: str = Field(default="http://localhost:8000/api", description="Base URL of the workflow REST API")
    workflow_api_token: Optional[str] = Field(default=None, description="Bearer token sent to the workflow REST API")
    workflow_api_timeout: float = Field(default=10.0, description="Per-request timeout in seconds")

    # ============================================================================
    # Logging
    # ============================================================================

    log_level: str = Field(default="INFO", description="Log level for campaign canvas loggers")

    @field_validator("canvas_x_gap", "canvas_y_gap")
    @classmethod
    def _positive_gap(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("layout gaps must be positive")
        return value

    @property
    def has_api_token(self) -> bool:
        """Check if requests to the workflow API are authenticated."""
        return bool(self.workflow_api_token)


# ============================================================================
# Global Config Instance
# ============================================================================

config = CanvasConfig()
