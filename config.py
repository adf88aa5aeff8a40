import os

from dotenv import load_dotenv

load_dotenv()

# Environment/config
DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGODB_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "campusQuest")

ACCESS_TOKEN_SECRET = os.getenv("ACCESS_TOKEN_SECRET")

R2_ENDPOINT = os.getenv("R2_ENDPOINT")
R2_ACCESS_KEY_ID = os.getenv("R2_ACCESS_KEY_ID")
R2_SECRET_ACCESS_KEY = os.getenv("R2_SECRET_ACCESS_KEY")
R2_PUBLIC_URL = os.getenv("R2_PUBLIC_URL", "")
R2_BUCKET = os.getenv("R2_BUCKET", "campus-quest-media")

RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Campus Quest Team <no-reply@supercoolfun.site>")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://supercoolfun.site")
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*").split(",")

PORT = int(os.getenv("PORT", 8000))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
