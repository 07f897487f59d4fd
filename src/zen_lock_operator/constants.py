"""Constants for the zen-lock operator."""

# API Group
API_GROUP = "security.kube-zen.io"
API_VERSION = "v1alpha1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_ZENLOCK = "ZenLock"
KIND_SECRET = "Secret"
KIND_POD = "Pod"

PLURAL_ZENLOCKS = "zenlocks"

# Labels set by the injector on the Secrets it creates
LABEL_PREFIX = "zen-lock.security.kube-zen.io"
LABEL_POD_NAME = f"{LABEL_PREFIX}/pod-name"
LABEL_POD_NAMESPACE = f"{LABEL_PREFIX}/pod-namespace"
LABEL_ZENLOCK_NAME = f"{LABEL_PREFIX}/zenlock-name"

# Finalizers
FINALIZER = f"{PLURAL_ZENLOCKS}.{API_GROUP}/finalizer"

# Controller name used in structured logs
CONTROLLER_NAME = "zen-lock-controller"

# Phases
PHASE_READY = "Ready"
PHASE_ERROR = "Error"

# Condition Types
COND_DECRYPTABLE = "Decryptable"

# Condition Reasons
REASON_KEY_VALID = "KeyValid"
REASON_KEY_NOT_FOUND = "KeyNotFound"
REASON_DECRYPTION_FAILED = "DecryptionFailed"
REASON_VALIDATION_FAILED = "ValidationFailed"

# Algorithms
DEFAULT_ALGORITHM = "age"
SUPPORTED_ALGORITHMS = frozenset({"age"})

# Subject kinds accepted in spec.allowedSubjects
SUBJECT_KINDS = frozenset({"ServiceAccount", "User", "Group"})

# Retry defaults for status and owner-reference writes (seconds)
DEFAULT_RETRY_MAX_ATTEMPTS = 3
DEFAULT_RETRY_INITIAL_DELAY = 0.1
DEFAULT_RETRY_MAX_DELAY = 2.0

# Handler retry backoff after a failed pass (seconds)
RETRY_MIN_DELAY = 1.0
RETRY_MAX_DELAY = 60.0
RETRY_BACKOFF = 2.0

# Requeue delays (seconds)
REQUEUE_DELAY_KEY_NOT_FOUND = 30.0
REQUEUE_DELAY_POD_NOT_FOUND = 5.0
REQUEUE_DELAY_POD_NO_UID = 2.0

# Orphaned Secrets without a Pod are deleted after this many seconds
DEFAULT_ORPHAN_TTL_SECONDS = 15 * 60.0

# Environment variables
ENV_PRIVATE_KEY = "ZEN_LOCK_PRIVATE_KEY"
ENV_ORPHAN_TTL = "ZEN_LOCK_ORPHAN_TTL"
ENV_DECRYPTOR = "ZEN_LOCK_DECRYPTOR"
ENV_METRICS_PORT = "METRICS_PORT"
ENV_REQUEST_TIMEOUT = "K8S_REQUEST_TIMEOUT_SECONDS"
ENV_ENABLE_CONTROLLER = "ENABLE_CONTROLLER"
