import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Bot configuration settings"""

    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///swat_bot.db')

    # Bot settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Timezone whose midnight resets daily points
    TIMEZONE = os.getenv('TIMEZONE', 'UTC')

    # New members join this unit unless told otherwise
    DEFAULT_UNIT = os.getenv('DEFAULT_UNIT', 'SWAT')

    # Submission limits
    MIN_QUANTITY = 1
    MAX_QUANTITY = 20
    MAX_BONUS_UNITS = 50
    BOOSTER_MULTIPLIER = 2

    # Destructive HR actions (remove_all, deletion) need a real reason
    MIN_DESTRUCTIVE_REASON_LENGTH = 5

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.DISCORD_GUILD_ID:
            raise ValueError("DISCORD_GUILD_ID is required")
        if not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required")
