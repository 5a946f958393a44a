import json
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str
    CORS_ORIGINS: str = ""  # comma-separated origins
    LOG_LEVEL: str = "INFO"

    # Clerk session token verification
    CLERK_JWT_KEY: str = ""  # PEM public key from the Clerk dashboard
    CLERK_AUTHORIZED_PARTIES: str = ""  # comma-separated azp allow-list
    CLERK_ISSUER: str = ""

    SEED_WORKSPACE_NAME: str = "Default Workspace"
    SEED_ADMINS: str = "[]"  # JSON array of {auth_user_id, name, username}

    # Object storage (S3-compatible; GCS interoperability endpoint by default)
    STORAGE_ENDPOINT_URL: str = "https://storage.googleapis.com"
    STORAGE_ACCESS_KEY_ID: str = ""
    STORAGE_SECRET_ACCESS_KEY: str = ""
    STORAGE_REGION: str = "auto"
    STORAGE_BUCKET: str = ""
    VIDEO_URL_EXPIRATION_SECONDS: int = 3600  # 1 hour

    @property
    def cors_origins_list(self) -> list[str]:
        if not self.CORS_ORIGINS:
            return []
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def authorized_parties_list(self) -> list[str]:
        if not self.CLERK_AUTHORIZED_PARTIES:
            return []
        return [party.strip() for party in self.CLERK_AUTHORIZED_PARTIES.split(",") if party.strip()]

    @property
    def seed_admins_list(self) -> list[dict]:
        try:
            admins = json.loads(self.SEED_ADMINS)
        except json.JSONDecodeError:
            return []
        return admins if isinstance(admins, list) else []

    @property
    def clerk_public_key(self) -> str:
        """PEM key with escaped newlines restored (env files often carry them escaped)"""
        return self.CLERK_JWT_KEY.replace("\\n", "\n")

    class Config:
        env_file = ".env"
        extra = "allow"
        # Allow reading from system environment variables
        case_sensitive = False


settings = Settings()
