from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Any
import json

HISTORY_MODES = ("saved", "recent")


class Settings(BaseSettings):
    database_url: str = "sqlite:///./chameleon.db"
    debug: bool = True
    host: str = "0.0.0.0"
    port: int | None = None
    cors_origins: List[str] = []

    # Which history the conversion flow writes into
    # 変換完了時にどちらの履歴へ記録するか
    history_mode: str = "saved"
    recent_history_limit: int = 50

    output_dir: str = "output"
    conversion_timeout: int = 300  # seconds

    # External engine binaries, resolved through PATH when not absolute
    # 外部エンジンの実行ファイル（絶対パスでなければPATHから解決する）
    pandoc_path: str = "pandoc"
    imagemagick_path: str = "magick"
    ffmpeg_path: str = "ffmpeg"

    log_dir: str = "logs"
    log_level: str = "INFO"

    class Config:
        # Load from backend/.env while allowing real environment overrides
        # backend/.envから読み込みつつ環境変数の上書きを許可する
        env_file = ".env"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> Any:
        """Normalize CORS_ORIGINS from JSON or comma-separated strings.
        CORS_ORIGINSをJSON文字列またはカンマ区切り文字列として扱えるように整形する。
        """
        if isinstance(v, str):
            s = v.strip()
            if s.startswith("["):
                try:
                    return json.loads(s)
                except ValueError:
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]
        return v

    @field_validator("history_mode", mode="before")
    @classmethod
    def normalize_history_mode(cls, v: Any) -> Any:
        """Accept HISTORY_MODE case-insensitively and reject unknown modes.
        HISTORY_MODEは大文字小文字を区別せず受け付け、未知のモードは拒否する。
        """
        if isinstance(v, str):
            v = v.strip().lower()
            if v not in HISTORY_MODES:
                raise ValueError(f"history_mode must be one of {', '.join(HISTORY_MODES)}")
        return v

    @field_validator("recent_history_limit")
    @classmethod
    def check_recent_history_limit(cls, v: int) -> int:
        if v < 1:
            raise ValueError("recent_history_limit must be positive")
        return v


settings = Settings()
