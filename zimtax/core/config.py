from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ZIMTAX_", env_file=".env", extra="ignore")

    APP_NAME: str = Field("ZimTax", description="Logger namespace prefix")
    LOG_LEVEL: str = Field("INFO", description="Engine log level")
    LOG_PATH: str = Field("./data/logs", description="Directory for rotating engine logs")

    # Defaults used when a caller does not supply its own rule set
    BASE_CURRENCY: str = Field("USD", description="Base (pivot) currency code")
    TAX_YEAR: int = Field(2025, description="Default tax year for the built-in rules")
    RULES_FILE: Optional[str] = Field(None, description="JSON file overriding the built-in rules")

    # Seed for the scenario exchange-rate walk. None draws from OS entropy.
    RANDOM_SEED: Optional[int] = Field(None, description="Seed for projection randomness")

settings = Settings()
