"""
Application settings loaded from environment variables.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── Host application ─────────────────────────────────────────────────
    app_origin: str = "http://localhost:8000"   # origin OAuth redirects must return to

    # Screen placement of the host window, used to center the auth window
    host_window_x: int = 0
    host_window_y: int = 0
    host_window_width: int = 1280
    host_window_height: int = 800

    # ── OAuth window ─────────────────────────────────────────────────────
    oauth_window_backend: str = "playwright"   # playwright | loopback
    oauth_browser_headless: bool = False
    oauth_poll_interval_ms: int = 250
    oauth_max_poll_errors: int = 0   # 0 = keep polling until the deadline

    # ── Server ───────────────────────────────────────────────────────────
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
    }

    def host_window(self) -> dict:
        """Return the host window bounds as a plain dict."""
        return {
            "x": self.host_window_x,
            "y": self.host_window_y,
            "width": self.host_window_width,
            "height": self.host_window_height,
        }


config = Settings()
