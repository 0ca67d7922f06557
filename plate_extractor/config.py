import os

# Byte ceiling enforced by the text recognizer (OCR.Space free tier)
MAX_FILE_SIZE = 1024 * 1024

# Long-side cap and short-side floor for the compression search.
# The floor keeps characters tall enough for recognition.
MAX_DIMENSION = 1400
MIN_DIMENSION = 600

# Accepted input media types
ALLOWED_TYPES = ('image/jpeg', 'image/jpg', 'image/png', 'image/gif')

# Compression search
MAX_ATTEMPTS = 10
INITIAL_QUALITY = 0.92
QUALITY_STEP = 0.08
QUALITY_FLOOR = 0.55
# One extra quality drop once the dimension floor is reached
LAST_RESORT_QUALITY = 0.45
SCALE_STEP = 0.9

# Candidate score weights: (size headroom, pixel area kept, quality)
SCORE_WEIGHTS = (0.4, 0.4, 0.2)

# OCR-oriented render profile for the compression loop
COMPRESSION_GRAYSCALE = True
COMPRESSION_CONTRAST = 1.25
COMPRESSION_SHARPEN = True

# Files under the budget but above this size get a single light re-render
LIGHT_PREPROCESS_THRESHOLD = 300 * 1024
LIGHT_MAX_DIMENSION = 1200
LIGHT_CONTRAST = 1.15
LIGHT_QUALITY = 0.85
# Light re-render is kept only if it is at most this fraction of the original
LIGHT_MIN_SAVING = 0.9

# Karnataka plate: KA##A#### or KA##AA####
KA_VEHICLE_PATTERN = r"^KA\d{2}[A-Z]{1,2}\d{4}$"

# Characters that text recognition swaps for each other (bidirectional)
CONFUSION_MAP = {
    'O': '0', '0': 'O',
    'I': '1', '1': 'I',
    'Z': '2', '2': 'Z',
    'S': '5', '5': 'S',
    'B': '8', '8': 'B',
}
# All subsets of 5 confusable positions fit in 32 variants
MAX_VARIANTS = 32
MAX_CONFUSABLE_POSITIONS = 10

# How many tokens after a district prefix may hold the rest of the plate
LOOKAHEAD_WINDOW = 4

# OCR.Space configuration
OCR_SPACE_URL = os.environ.get("OCR_SPACE_URL", "https://api.ocr.space/parse/image")
OCR_SPACE_API_KEY = os.environ.get("OCR_SPACE_API_KEY", "")
OCR_SPACE_ENGINE = "2"
OCR_LANGUAGE = "eng"
OCR_TIMEOUT_SECONDS = 60.0

# EasyOCR (local fallback)
EASYOCR_LANG = 'en'
