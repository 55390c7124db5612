from .config import RouteRule, settings

# Segment matching; "{name}" captures one segment


def match_path(pattern: str, path: str) -> dict[str, str] | None:
    pattern_parts = pattern.strip("/").split("/")
    path_parts = path.strip("/").split("/")
    if len(pattern_parts) != len(path_parts):
        return None

    params = {}
    for expected, actual in zip(pattern_parts, path_parts):
        if expected.startswith("{") and expected.endswith("}"):
            if not actual:
                return None
            params[expected[1:-1]] = actual
        elif expected != actual:
            return None
    return params


def find_route(method: str, path: str) -> tuple[RouteRule | None, dict[str, str] | None]:
    for rule in settings.routes:
        if method.upper() not in rule.methods:
            continue
        params = match_path(rule.path, path)
        if params is not None:
            return rule, params
    return None, None


def allowed_methods(path: str, local_routes: dict[str, list[str]] | None = None) -> list[str]:
    """Methods answered for ``path``, for OPTIONS replies."""
    methods = list((local_routes or {}).get(path, []))
    for rule in settings.routes:
        if match_path(rule.path, path) is not None:
            methods.extend(m for m in rule.methods if m not in methods)
    return methods
