"""
Application configuration
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # API
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8080
    API_TITLE: str = "Solc External Tests API"
    API_VERSION: str = "0.1.0"
    API_RELOAD: bool = False

    # Redis
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0

    # Workers
    EXT_TEST_WORKSPACE: str = "/tmp/ext_tests"
    ARTIFACTS_PATH: str = "/files/artifacts"

    # External test defaults
    EXT_TEST_EVM_VERSION: str = "london"
    SOLCJS_REPO_URL: str = "https://github.com/ethereum/solc-js.git"
    SOLCJS_BRANCH: str = "master"
    EXT_TEST_COMMAND_TIMEOUT: int = 3600  # seconds
    COMPILE_ONLY: bool = False

    @property
    def redis_url(self) -> str:
        """Redis connection string"""
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    @property
    def reports_root(self) -> str:
        """Where the worker writes per-job reports"""
        return f"{self.ARTIFACTS_PATH}/external_tests"

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
