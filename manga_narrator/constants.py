"""All magic numbers and configuration constants."""

PANEL_GAP_TOLERANCE = 80            # 0-1000 canvas units: vertical gap still joining one panel
SAME_ROW_TOLERANCE = 40             # 0-1000 canvas units: yMin delta treated as one text row
SFX_MAX_LENGTH = 6                  # CJK-only strings up to this length are sound effects

LINE_PAUSE_MS = 350                 # ms pause between script lines
PANEL_PAUSE_MS = 700                # ms pause at panel changes (offline render only)
SPEED_MIN = 0.5                     # playback rate clamp
SPEED_MAX = 2.0
SYNTHESIS_TIMEOUT = 20.0            # seconds before a synthesis call counts as unavailable
SIMILARITY_BOOST = 0.75             # fixed ElevenLabs similarity boost

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
ELEVENLABS_MODEL = "eleven_multilingual_v2"

TTS_RETRY_COUNT = 3                 # max retries per fallback synthesis
TTS_RETRY_BASE_DELAY = 1.0          # seconds, base delay for exponential backoff
FALLBACK_EDGE_VOICE = "en-US-GuyNeural"      # degraded voice used when synthesis is unavailable

# Coarse vocal style → ElevenLabs voice id
ARCHETYPE_VOICE_MAP = {
    "legendary_deep": "ODq5zmih8GrVes37Dizd",         # Patrick
    "narrator_cinematic": "TxGEqnHWrfWFTfGW9XjX",     # Josh
    "heroic_youth": "XrExE9yKIg1WjnnlVkGX",           # Matilda
    "villain_authoritative": "MF3mGyEYCl7XYWbV9V6O",  # Elli
    "comic_high_pitch": "AZnzlk1XvdvUeBnXmlld",       # Domi
    "wise_elder": "t0jbNlBVZ17f02VwhZ8G",             # Fin
    "mob_generic": "ErXwobaYiN019PkySvjV",            # Antoni
}

# Character type → ElevenLabs voice id
DEFAULT_VOICE_MAP = {
    "Hero": "XrExE9yKIg1WjnnlVkGX",          # Matilda
    "Rival": "ODq5zmih8GrVes37Dizd",         # Patrick
    "Heroine": "EXAVITQu4vr4xnSDxMaL",       # Sarah
    "Mentor": "t0jbNlBVZ17f02VwhZ8G",        # Fin
    "ComicRelief": "AZnzlk1XvdvUeBnXmlld",   # Domi
    "Narrator": "TxGEqnHWrfWFTfGW9XjX",      # Josh
    "Villain": "MF3mGyEYCl7XYWbV9V6O",       # Elli
    "Mob": "ErXwobaYiN019PkySvjV",           # Antoni
}

FALLBACK_VOICE = "TxGEqnHWrfWFTfGW9XjX"      # Josh

PERSONALITY_BY_TYPE = {
    "hero": "hero",
    "heroine": "hero",
    "villain": "villain",
    "rival": "villain",
    "narrator": "narrator",
    "mob": "mob",
}

HOME_ENV = "MANGA_NARRATOR_HOME"
API_KEY_ENV = "ELEVENLABS_API_KEY"
DEFAULT_HOME = "~/.manga_narrator"
SETTINGS_FILE = "settings.json"
STORE_DIR = "store"
CACHE_DIR = "audio_cache"
VOICE_MEMORY_KEY = "voice_memory"
OUTPUT_BITRATE = "192k"             # MP3 output bitrate for offline renders
VERSION = "0.1.0"
