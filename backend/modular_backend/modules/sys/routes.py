"""Route constants of the HTTP API.

Routes are laid out as ``{root}/{api type}/{module}/{version}/{path}``,
e.g. ``api/rest/sys/v1/diagnostics/code-quality``.
"""

ROOT = "api"
REST_TYPE = "rest"
ODATA_TYPE = "odata"
GRAPHQL_TYPE = "graphql"


class Versions:
    V1 = "v1"
    V2 = "v2"
    V3 = "v3"


def _require(value: str, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} cannot be blank")
    return str(value).strip()


def build_rest_module_base(module_id: str) -> str:
    """``build_rest_module_base("sys") == "api/rest/sys"``"""
    return f"{ROOT}/{REST_TYPE}/{_require(module_id, 'module id')}"


def build_rest_version_base(module_id: str, version: str) -> str:
    """``build_rest_version_base("sys", Versions.V1) == "api/rest/sys/v1"``"""
    return f"{build_rest_module_base(module_id)}/{_require(version, 'version')}"


def build_odata_module_base(module_id: str) -> str:
    return f"{ROOT}/{ODATA_TYPE}/{_require(module_id, 'module id')}"


def build_graphql_module_base(module_id: str) -> str:
    return f"{ROOT}/{GRAPHQL_TYPE}/{_require(module_id, 'module id')}"


MODULE_ID = "sys"


class SysRoutesV1:
    """Paths of the Sys module's v1 REST API."""
    VERSION_BASE = build_rest_version_base(MODULE_ID, Versions.V1)

    DIAGNOSTICS = f"{VERSION_BASE}/diagnostics"
    DIAGNOSTICS_CODE_QUALITY = f"{DIAGNOSTICS}/code-quality"
    DIAGNOSTICS_STARTUP = f"{DIAGNOSTICS}/startup"
    DIAGNOSTICS_SMOKE_TESTS = f"{DIAGNOSTICS}/smoketests"
    DIAGNOSTICS_SERVER = f"{DIAGNOSTICS}/server"

    PERMISSIONS = f"{VERSION_BASE}/permissions"

    SETTINGS = f"{VERSION_BASE}/settings"
    SETTINGS_EFFECTIVE = f"{SETTINGS}/effective"
    SETTINGS_SYSTEM = f"{SETTINGS}/system"
    SETTINGS_WORKSPACE = f"{SETTINGS}/workspace"
    SETTINGS_USER = f"{SETTINGS}/user"

    REFDATA = f"{VERSION_BASE}/refdata"
    REFDATA_LANGUAGES = f"{REFDATA}/languages"

    HEALTH = f"{VERSION_BASE}/health"
    HEALTH_LIVE = f"{HEALTH}/live"
    HEALTH_READY = f"{HEALTH}/ready"
    HEALTH_STARTUP = f"{HEALTH}/startup"

    SESSIONS = f"{VERSION_BASE}/sessions"
    CONTEXT = f"{VERSION_BASE}/context"
    DEVICE = f"{VERSION_BASE}/device"


def relative(path: str, base: str = SysRoutesV1.VERSION_BASE) -> str:
    """Path of `path` below `base`, with a leading slash."""
    if not path.startswith(base):
        raise ValueError(f"{path} is not below {base}")
    return path[len(base):] or "/"
