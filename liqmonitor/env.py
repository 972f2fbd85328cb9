# liqmonitor/env.py
from dotenv import load_dotenv
import os

# load .env from the project root, real environment wins
load_dotenv(override=False)

def env(key: str, default=None):
    value = os.getenv(key)
    if value is None or value == "":
        return default
    return value
