"""Fixed names, paths and package lists used by the provisioning pipelines."""

DIR_MODE = 0o755
SCRIPT_MODE = 0o755
KEYRING_MODE = 0o644

DEFAULT_STAGE = "startup"

SYNAPSE_DB_ROLE = "synapse"
SYNAPSE_DB_NAME = "synapse"
SYNAPSE_SERVICE = "matrix-synapse"
SYNAPSE_PORT = 8008
SYNAPSE_SECRET_LENGTH = 32

POSTGRES_SERVICE = "postgresql"
POSTGRES_SUPERUSER = "postgres"
DB_READY_SETTLE_SECONDS = 3
DB_READY_ATTEMPTS = 10
DB_READY_INTERVAL_SECONDS = 2

SERVICE_CHECK_DELAY_SECONDS = 3

HOMESERVER_CONFIG_PATH = "/etc/matrix-synapse/homeserver.yaml"
BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

MATRIX_KEYRING_URL = "https://packages.matrix.org/debian/matrix-org-archive-keyring.gpg"
MATRIX_KEYRING_PATH = "/usr/share/keyrings/matrix-org-archive-keyring.gpg"
MATRIX_REPO_URL = "https://packages.matrix.org/debian/"
MATRIX_SOURCES_LIST = "/etc/apt/sources.list.d/matrix-org.list"

DOCKER_KEYRING_DIR = "/etc/apt/keyrings"
DOCKER_KEYRING_PATH = "/etc/apt/keyrings/docker.asc"
DOCKER_REPO_BASE_URL = "https://download.docker.com/linux"
DOCKER_SOURCES_LIST = "/etc/apt/sources.list.d/docker.list"
DOCKER_SERVICE = "docker"

REGISTRATION_SCRIPT_NAME = "register_new_matrix_user.py"
REGISTRATION_SCRIPT_URL = (
    "https://raw.githubusercontent.com/element-hq/synapse/refs/heads/develop/"
    "synapse/_scripts/register_new_matrix_user.py"
)

ADMIN_IMAGE = "awesometechnologies/synapse-admin"
ADMIN_HOST_PORT = 8080
ADMIN_CONTAINER_PORT = 80

MANIFEST_FILE_NAME = "provision-manifest.json"

POSTGRES_PACKAGES = ("postgresql", "postgresql-client")
MATRIX_DEPENDENCY_PACKAGES = ("lsb-release", "wget", "apt-transport-https")
MATRIX_PACKAGES = ("matrix-synapse-py3",)
PYTHON_TOOL_PACKAGES = ("python3", "python3-requests", "python3-yaml", "python3-pip")
PYTHON_TOOL_PIP_PACKAGES = ("typing_extensions",)

DOCKER_CONFLICTING_PACKAGES = (
    "docker.io",
    "docker-doc",
    "docker-compose",
    "docker-compose-v2",
    "podman-docker",
    "containerd",
    "runc",
)
DOCKER_PREREQUISITE_PACKAGES = ("ca-certificates", "curl")
DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-buildx-plugin",
    "docker-compose-plugin",
)

BASE_FIREWALL_RULES = ("ssh",)
