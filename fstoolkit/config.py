from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_BINARY_EXTENSIONS = frozenset(
    {
        'png', 'jpg', 'jpeg', 'gif', 'bmp', 'tiff', 'webp',
        'mp3', 'wav', 'ogg', 'flac', 'aac',
        'mp4', 'avi', 'mkv', 'mov', 'wmv',
        'zip', 'rar', '7z', 'tar', 'gz',
        'pdf', 'doc', 'docx', 'ppt', 'pptx', 'xls', 'xlsx', 'hwp',
        'exe', 'apk', 'dmg', 'iso',
        'db', 'sqlite', 'sqlite3',
    }
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='FSTOOLKIT_', env_file='.env', env_file_encoding='utf-8')

    app_name: str = 'fstoolkit'
    sandbox_root: Optional[str] = None
    trusted_roots: list[str] = Field(default_factory=lambda: ['/sdcard', '/storage/emulated/0'])
    copy_buffer_size: int = Field(default=4096, ge=512, le=16 * 1024 * 1024)
    default_size_unit: str = Field(default='mb', pattern='^(b|kb|mb|gb|tb)$')
    timestamp_offset_hours: int = Field(default=9, ge=-12, le=14)
    binary_extensions: set[str] = Field(default_factory=lambda: set(DEFAULT_BINARY_EXTENSIONS))
    log_level: str = 'info'


settings = Settings()
