#!/usr/bin/env python3
"""
HTTP control surface for the playout scheduler (Flask).

- Config via .env (RTMP_URL / DEFAULT_RTMP_URL, HOST, PORT, FFMPEG_PATH,
  FFPROBE_PATH, IDLE_POLL_INTERVAL, HW_VIDEO_ENCODER, ...; see playout/config.py)
- One PlayerState per process; the playlist lives in memory only
- Playlist editing: /append, /insert, /remove, /load, /list, /clear, /length
- Transport: /start, /stop, /next, /previous, /loop
- Inspection: /current, /status, /duration/<index>, /logs
- Control results are {"ok": bool, ...}; malformed requests get 400
"""
import os

from flask import Flask, jsonify, request
from dotenv import load_dotenv

# Load .env if present (before playout.config reads the environment)
load_dotenv()

from playout.elements import element_from_dict, element_to_dict, elements_from_list
from playout.errors import ElementError, ProbeFailure
from playout.player_state import build_player_state

player_state = build_player_state()

app = Flask(__name__)


def _bad_request(detail: str):
    return jsonify({"detail": detail}), 400


def _int_field(data: dict, name: str):
    try:
        return int(data.get(name)), None
    except (TypeError, ValueError):
        return None, _bad_request(f"{name} must be an integer")


@app.get("/")
def index():
    return (
        "playout scheduler. endpoints: /append /insert /remove /load /list /clear "
        "/length /start /stop /next /previous /loop /current /status /duration/<i> /logs\n"
    )


# ========== PLAYLIST ROUTES ==========


@app.post("/append")
def append():
    data = request.get_json(silent=True)
    try:
        item = element_from_dict(data)
    except ElementError as e:
        return _bad_request(str(e))
    n = player_state.append(item)
    return jsonify({"ok": True, "length": n, "element": element_to_dict(item)})


@app.post("/insert")
def insert():
    data = request.get_json(silent=True) or {}
    index, err = _int_field(data, "index")
    if err:
        return err
    try:
        item = element_from_dict(data.get("element"))
    except ElementError as e:
        return _bad_request(str(e))
    ok = player_state.insert(index, item)
    return jsonify({"ok": ok, "index": index, "length": player_state.length()})


@app.post("/remove")
def remove():
    data = request.get_json(silent=True) or {}
    index, err = _int_field(data, "index")
    if err:
        return err
    item, ok = player_state.remove(index)
    return jsonify(
        {"ok": ok, "index": index, "removed": element_to_dict(item) if ok else None}
    )


@app.post("/load")
def load():
    """
    Replace the playlist with a JSON list of elements (or {"elements": [...]}).
    """
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        data = data.get("elements")
    try:
        items = elements_from_list(data)
    except ElementError as e:
        return _bad_request(str(e))
    n = player_state.load(items)
    return jsonify({"ok": True, "length": n})


@app.get("/list")
def list_playlist():
    return jsonify({"playlist": [element_to_dict(i) for i in player_state.list()]})


@app.post("/clear")
def clear():
    player_state.clear()
    return jsonify({"ok": True})


@app.get("/length")
def length():
    return jsonify({"length": player_state.length()})


# ========== TRANSPORT ROUTES ==========


@app.route("/start", methods=["GET", "POST"])
def start():
    ok = player_state.start()
    return jsonify({"ok": ok, "status": "started" if ok else "already running"})


@app.route("/stop", methods=["GET", "POST"])
def stop():
    ok = player_state.stop()
    return jsonify({"ok": ok, "status": "stopping" if ok else "not running"})


@app.route("/next", methods=["GET", "POST"])
def next_element():
    ok = player_state.next()
    item, _ = player_state.current()
    return jsonify({"ok": ok, "element": element_to_dict(item) if item else None})


@app.route("/previous", methods=["GET", "POST"])
def previous_element():
    ok = player_state.previous()
    item, _ = player_state.current()
    return jsonify({"ok": ok, "element": element_to_dict(item) if item else None})


@app.get("/loop")
def get_loop():
    return jsonify({"loop": player_state.is_loop()})


@app.post("/loop")
def set_loop():
    data = request.get_json(silent=True) or {}
    loop = data.get("loop")
    if not isinstance(loop, bool):
        return _bad_request("loop must be a boolean")
    player_state.set_loop(loop)
    return jsonify({"ok": True, "loop": loop})


# ========== INSPECTION ROUTES ==========


@app.get("/current")
def current():
    with player_state.lock:
        item, ok = player_state.current()
        index = player_state.current_index
    return jsonify(
        {"ok": ok, "index": index, "element": element_to_dict(item) if ok else None}
    )


@app.get("/status")
def status():
    return jsonify(player_state.status())


@app.get("/duration/<int:index>")
def duration(index: int):
    try:
        seconds = player_state.get_duration(index)
    except ProbeFailure as e:
        return jsonify({"ok": False, "detail": str(e)}), 422
    return jsonify({"ok": True, "index": index, "seconds": seconds})


@app.get("/logs")
def get_logs():
    try:
        limit = int(request.args.get("limit", "200"))
    except ValueError:
        limit = 200
    logs = player_state.get_logs(limit, match=request.args.get("match"))
    return jsonify({"lines": logs})


if __name__ == "__main__":
    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8080"))

    if os.getenv("AUTOSTART", "0").strip().lower() in ("1", "true", "yes", "on"):
        player_state.start()

    print(f"[App] Streaming to {player_state.rtmp_url}")
    print(f"[App] Starting Flask server on {host}:{port}")
    try:
        app.run(host=host, port=port, threaded=True)
    finally:
        if player_state.stop():
            player_state.join(timeout=10)
        print("[App] Exited")
