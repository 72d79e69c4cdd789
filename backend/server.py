import os
import sys
import time
import threading
import hashlib
import json
from collections import OrderedDict

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, Response, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from conversation_export import ExportFormatError, export_conversation
from conversation_search import SearchSession
from data_loader import load_data
from global_search import count_by_type, search_catalog
from link_sanitizer import clean_markdown
from normalizer import normalize_format, normalize_query
from snap_guides import DEFAULT_SNAP_THRESHOLD, compute_guides
from validators import (
    parse_rect,
    validate_export_body,
    validate_search_body,
    validate_snap_body,
)

load_dotenv()

app = Flask(__name__)

API_VERSION = "1.0.0"

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, int(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
_REQUEST_CACHE_SIZE = _env_int("REQUEST_CACHE_SIZE", 128, minimum=1)
SNAP_THRESHOLD = _env_float("SNAP_THRESHOLD", float(DEFAULT_SNAP_THRESHOLD), minimum=0.0)
_MAX_SEARCH_LIMIT = 20


class _LruResponseCache:
    """Thread-safe bounded in-memory cache for JSON-serializable responses."""

    def __init__(self, max_size: int):
        self.max_size = max(1, int(max_size))
        self._lock = threading.Lock()
        self._items: OrderedDict[str, dict] = OrderedDict()

    def get(self, key: str):
        with self._lock:
            if key not in self._items:
                return None
            value = self._items.pop(key)
            self._items[key] = value
            return value

    def set(self, key: str, value: dict) -> None:
        with self._lock:
            if key in self._items:
                self._items.pop(key)
            self._items[key] = value
            while len(self._items) > self.max_size:
                self._items.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


_search_response_cache = _LruResponseCache(_REQUEST_CACHE_SIZE)


def _cache_enabled() -> bool:
    return not app.config.get("TESTING", False)


def _stable_payload_hash(payload) -> str:
    normalized = payload if payload is not None else {}
    encoded = json.dumps(
        normalized,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
    ).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _data_version_tag() -> str:
    return "none" if _data_mtime is None else str(_data_mtime)


def _request_cache_key(prefix: str, payload) -> str:
    return f"{prefix}:{_data_version_tag()}:{_stable_payload_hash(payload)}"


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


def _error_response(error_code: str, message: str, status: int = 400):
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": error_code,
            "message": message,
        },
    }), status


# ── Startup data load ──────────────────────────────────────────────────────────
# Only /api/search needs the catalog, so a missing catalog is not fatal.
_data = None
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded search catalog from {DATA_PATH}")
except FileNotFoundError:
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.isdir(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default catalog ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded search catalog from {DATA_PATH}")
    else:
        print(f"[WARN] Catalog directory not found: {DATA_PATH}; global search disabled.", file=sys.stderr)
except Exception as exc:
    print(f"[FATAL] Failed to load catalog: {exc}", file=sys.stderr)
    sys.exit(1)


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload the CSV catalog when DATA_PATH changes on disk.

    Returns True when a reload occurred, else False.
    """
    global _data, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Catalog reload failed; keeping previous dataset: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        _search_response_cache.clear()
        print(f"[OK] Reloaded search catalog from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Catalog reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": API_VERSION,
        "catalog_loaded": _data is not None,
    })


# ── Error handlers ─────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return _error_response(e.name.upper().replace(" ", "_"), e.description, e.code)
    print(f"[WARN] Unhandled error on {request.method} {request.path}: {e!r}", file=sys.stderr)
    return _error_response("SERVER_ERROR", "An unexpected server error occurred.", 500)


# ── Routes ─────────────────────────────────────────────────────────────────────
@app.route("/api/snap-guides", methods=["POST"])
def snap_guides_endpoint():
    """Alignment guides for the diary canvas item being dragged."""
    body = request.get_json(force=True, silent=True)
    error_code, message = validate_snap_body(body)
    if error_code:
        return _error_response(error_code, message)

    current = parse_rect(body["current"])
    others = [parse_rect(o) for o in body.get("others", [])]
    threshold = body.get("threshold")
    if threshold is None:
        threshold = SNAP_THRESHOLD

    guides = compute_guides(current, others, threshold)
    return jsonify({
        "mode": "snap_guides",
        "threshold": threshold,
        "vertical": guides["vertical"],
        "horizontal": guides["horizontal"],
    })


@app.route("/api/conversation/search", methods=["POST"])
def conversation_search_endpoint():
    """
    Stateless wrapper over SearchSession: the client sends back the focused
    index it holds and an optional step ('next' or 'prev').
    match_start and match_end are code-point offsets into the snippet, not
    UTF-16 indices; see search_messages().
    """
    body = request.get_json(force=True, silent=True)
    error_code, message = validate_search_body(body)
    if error_code:
        return _error_response(error_code, message)

    session = SearchSession(body.get("messages", []))
    session.open()
    session.set_query(body.get("query", ""))
    session.go_to(body.get("active_index", 0))

    step = body.get("step")
    if step == "next":
        session.next_match()
    elif step == "prev":
        session.prev_match()

    preview, more_count = session.preview()
    return jsonify({
        "mode": "conversation_search",
        "query": session.query,
        "results": session.results,
        "result_count": session.result_count,
        "active_index": session.active_index,
        "active_result": session.active_result,
        "counter": session.counter_label(),
        "preview": preview,
        "more_count": more_count,
    })


@app.route("/api/conversation/export", methods=["POST"])
def conversation_export_endpoint():
    body = request.get_json(force=True, silent=True)
    error_code, message = validate_export_body(body)
    if error_code:
        return _error_response(error_code, message)

    fmt = body.get("format") or "markdown"
    if normalize_format(fmt) is None:
        return _error_response("INVALID_INPUT", "'format' must be one of: markdown, text, json.")

    try:
        content, filename, mime_type = export_conversation(
            body.get("messages", []),
            fmt,
            title=body.get("title") or None,
        )
    except ExportFormatError as exc:
        return _error_response("INVALID_INPUT", str(exc))
    except (TypeError, ValueError) as exc:
        return _error_response("INVALID_INPUT", f"Could not parse message timestamps: {exc}")

    return Response(
        content,
        mimetype=mime_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.route("/api/markdown/sanitize", methods=["POST"])
def markdown_sanitize_endpoint():
    body = request.get_json(force=True, silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("content"), str):
        return _error_response("INVALID_INPUT", "'content' must be a string.")
    return jsonify({"content": clean_markdown(body["content"])})


@app.route("/api/search", methods=["GET"])
def global_search_endpoint():
    """Catalog-wide search used by the header search box."""
    _refresh_data_if_needed()
    if _data is None:
        return _error_response("DATA_NOT_LOADED", "Search catalog is not loaded.", 503)

    raw_limit = request.args.get("limit", "5")
    try:
        limit = int(raw_limit)
        if not (1 <= limit <= _MAX_SEARCH_LIMIT):
            raise ValueError
    except (TypeError, ValueError):
        return _error_response(
            "INVALID_INPUT",
            f"limit must be an integer between 1 and {_MAX_SEARCH_LIMIT}.",
        )

    needle = normalize_query(request.args.get("q", ""))
    if needle is None:
        return jsonify({"mode": "search", "query": "", "results": [], "counts": {}})

    cache_key = _request_cache_key("search", {"q": needle, "limit": limit})
    if _cache_enabled():
        cached = _search_response_cache.get(cache_key)
        if cached is not None:
            return jsonify(cached)

    results = search_catalog(_data, needle, limit=limit)
    response_payload = {
        "mode": "search",
        "query": needle,
        "results": results,
        "counts": count_by_type(results),
    }
    if _cache_enabled():
        _search_response_cache.set(cache_key, response_payload)
    return jsonify(response_payload)


app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])


# -- API catch-all (404 for unknown /api/* routes, 405 for wrong method) --
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    path = f"/api/{rest}"
    allowed = sorted({
        method
        for rule in app.url_map.iter_rules()
        if rule.rule == path and rule.endpoint != "api_catch_all"
        for method in rule.methods - {"HEAD", "OPTIONS"}
    })
    if allowed:
        resp, status = _error_response(
            "METHOD_NOT_ALLOWED",
            f"{request.method} is not allowed for {path}; use {', '.join(allowed)}.",
            405,
        )
        resp.headers["Allow"] = ", ".join(allowed)
        return resp, status
    return _error_response("NOT_FOUND", f"{path} not found", 404)


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
