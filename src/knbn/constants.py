BOARD_FILE_SUFFIX = ".knbn"
DEFAULT_BOARD_FILE = ".knbn"
CONFIG_FILE = "knbn.config.yaml"

BOARD_VERSION = "0.2.0"

DEFAULT_BOARD_NAME = "Your Board"
DEFAULT_BOARD_DESCRIPTION = "Your local kanban board"
DEFAULT_COLUMNS = ("backlog", "todo", "working", "done")
DEFAULT_CLI_BOARD_NAME = "My Board"

STARTER_TASK_TITLE = "Create a .knbn!"
STARTER_TASK_DESCRIPTION = "Create your .knbn file to start using KnBn"
STARTER_TASK_COLUMN = "done"

# Task fields covered by search, split by how they are matched.
SEARCH_STRING_KEYS = ("title", "description", "sprint")
SEARCH_ARRAY_KEYS = ("labels",)
SEARCH_KEYS = SEARCH_STRING_KEYS + SEARCH_ARRAY_KEYS

DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 9000

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")
