import os
from pathlib import Path

from .constants import DATA_DIR, DB_FILE_NAME, DB_PATH_ENV

BASE_DIR = Path(__file__).resolve().parent
DATA_PATH = BASE_DIR / DATA_DIR
DB_PATH = Path(os.getenv(DB_PATH_ENV) or (DATA_PATH / DB_FILE_NAME))
