# config.py

# History
# Oldest snapshots are evicted once the log grows past this many entries.
UNDO_REDO_MAX_STATES = 50
SNAPSHOT_COMPRESSION_LEVEL = 6

# Sprite Configuration
MAX_PALETTE_COLORS = 256
TRANSPARENT_INDEX = 0
# Size used when a new frame is added without explicit dimensions
DEFAULT_NEW_FRAME_SIZE = (64, 64)
MAX_FRAME_DIMENSION = 65535

COLOR_MODE_INDEXED = "indexed"
COLOR_MODE_PACKED = "packed"

# STI header flag bits
STI_FLAG_TRANSPARENT = 0x01
STI_FLAG_ALPHA = 0x02
STI_FLAG_RGB = 0x04
STI_FLAG_INDEXED = 0x08
STI_FLAG_ZLIB = 0x10
STI_FLAG_ETRLE = 0x20

# Tools
TOOL_BRUSH = "brush"
TOOL_ERASER = "eraser"
TOOL_EYEDROPPER = "eyedropper"
TOOL_FILL = "fill"
TOOL_PAN = "pan"
DEFAULT_TOOL = TOOL_BRUSH
MAX_BRUSH_SIZE = 20

# View defaults (handed to the rendering layer as a ViewConfig)
DEFAULT_ZOOM = 8
MIN_ZOOM = 1
MAX_ZOOM = 32
GRID_MIN_ZOOM = 4

# Colors
INVALID_INDEX_COLOR = (255, 0, 255) # Magenta for palette indices past the table
GRID_COLOR = (0, 0, 0, 77)
