"""Configuration settings for the PDF development server."""
import argparse
import os
from dataclasses import dataclass
from typing import Optional

# Server defaults
ROOT_DIR = os.getenv("PDF_DEV_SERVER_ROOT", ".")
HOST = os.getenv("PDF_DEV_SERVER_HOST", "localhost")
PORT = int(os.getenv("PDF_DEV_SERVER_PORT", "0"))  # 0 picks a free port
CACHE_EXPIRATION_TIME = int(os.getenv("PDF_DEV_SERVER_CACHE_EXPIRATION", "0"))  # seconds

# Request limits
MAX_BODY_SIZE = 50 * 1024 * 1024  # 50MB
STREAM_CHUNK_SIZE = 64 * 1024  # 64KB

# Directory index
INDEX_PAGE_SIZE = 100

# Storage backend
STORAGE_BUCKET = os.getenv("PDF_DEV_SERVER_BUCKET", "pdfs")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
STORAGE_TIMEOUT = 30.0

# Directory paths
DATA_DIR = "./data"
TEMP_DIR = "./temp"
LOGS_DIR = "./logs"


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").lower() in ("1", "true", "yes")


@dataclass
class ServerConfig:
    root: str = ROOT_DIR
    host: str = HOST
    port: int = PORT
    cache_expiration_time: int = CACHE_EXPIRATION_TIME
    disable_range_requests: bool = False
    verbose: bool = False
    max_body_size: int = MAX_BODY_SIZE
    supabase_url: Optional[str] = SUPABASE_URL
    supabase_key: Optional[str] = SUPABASE_KEY
    bucket: str = STORAGE_BUCKET
    data_dir: str = DATA_DIR
    temp_dir: str = TEMP_DIR

    @property
    def use_supabase(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)

    @classmethod
    def from_env(cls) -> 'ServerConfig':
        """Create ServerConfig from environment variables."""
        return cls(
            disable_range_requests=_env_flag("PDF_DEV_SERVER_DISABLE_RANGE"),
            verbose=_env_flag("PDF_DEV_SERVER_VERBOSE"),
        )

    @classmethod
    def from_args(cls, argv=None) -> 'ServerConfig':
        """Create ServerConfig from command line arguments."""
        parser = argparse.ArgumentParser(description='Development server for static files and PDF uploads')
        parser.add_argument('--root', default=ROOT_DIR,
                            help='Directory to serve files from')
        parser.add_argument('--host', default=HOST,
                            help='Host name to bind to')
        parser.add_argument('--port', type=int, default=PORT,
                            help='Port to listen on (0 picks a free port)')
        parser.add_argument('--cache-expiration-time', type=int, default=CACHE_EXPIRATION_TIME,
                            help='Seconds added to the current time for the Expires header')
        parser.add_argument('--disable-range-requests', action='store_true',
                            help='Ignore Range headers and always serve full files')
        parser.add_argument('--verbose', action='store_true',
                            help='Log not-found paths and served ranges')
        parser.add_argument('--data-dir', default=DATA_DIR,
                            help='Blob directory for the local storage backend')
        args = parser.parse_args(argv)

        return cls(
            root=args.root,
            host=args.host,
            port=args.port,
            cache_expiration_time=args.cache_expiration_time,
            disable_range_requests=args.disable_range_requests or _env_flag("PDF_DEV_SERVER_DISABLE_RANGE"),
            verbose=args.verbose or _env_flag("PDF_DEV_SERVER_VERBOSE"),
            data_dir=args.data_dir,
        )
