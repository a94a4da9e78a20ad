"""
Configuration settings for the agents package.
"""

import os

from dotenv import load_dotenv

load_dotenv()

################################
# Model Configuration
################################

#==============================================================================
# SLIDE EDITING MODELS
#==============================================================================

SLIDE_EDITING_MODEL = os.getenv('SLIDE_EDITING_MODEL', 'gemini-2.5-flash')

# Low temperature keeps the model on the JSON output contract
SLIDE_EDITING_TEMPERATURE = 0.3
SLIDE_EDITING_MAX_OUTPUT_TOKENS = 65536
SLIDE_EDITING_TOP_P = 0.9
SLIDE_EDITING_TOP_K = 50

#==============================================================================
# IMAGE GENERATION PROVIDER SWITCH
#==============================================================================

# Select which provider handles image generation for edited slides: "gemini" or "http"
IMAGE_PROVIDER = os.getenv('IMAGE_PROVIDER', 'gemini')

GEMINI_IMAGE_MODEL = "gemini-2.5-flash-image-preview"

# Used when IMAGE_PROVIDER == "http"; accepts {prompt, width, height}
IMAGE_API_URL = os.getenv('IMAGE_API_URL', 'http://localhost:3000/api/images')

# Generated image size bounds (providers require multiples of 16)
IMAGE_DIMENSION_STEP = 16
IMAGE_MIN_DIMENSION = 128
IMAGE_MAX_DIMENSION = 1536

# Size assumed for inline images that carry no width/height and cannot be decoded
DEFAULT_IMAGE_WIDTH = 640
DEFAULT_IMAGE_HEIGHT = 480

#==============================================================================
# TEMPORARY IMAGE STORAGE
#==============================================================================

# Upload generated images to the temp bucket instead of inlining base64
USE_TEMPORARY_IMAGE_STORAGE = os.getenv('USE_TEMPORARY_IMAGE_STORAGE', 'false').lower() == 'true'

# Embed base64 when the temp upload fails instead of showing the failure placeholder
TEMP_STORAGE_FALLBACK_TO_BASE64 = os.getenv('TEMP_STORAGE_FALLBACK_TO_BASE64', 'true').lower() == 'true'

TEMP_IMAGES_BUCKET = os.getenv('TEMP_IMAGES_BUCKET', 'temp-images')
LESSON_ASSETS_BUCKET = os.getenv('LESSON_ASSETS_BUCKET', 'lesson-assets')

#==============================================================================
# PROMPT CONFIGURATION
#==============================================================================

# Minify slide HTML before it goes into the prompt
MINIFY_HTML_FOR_PROMPT = True

DEFAULT_CONTENT_LANGUAGE = os.getenv('DEFAULT_CONTENT_LANGUAGE', 'en')
