"""Stand-in backend worker speaking the newline-delimited JSON protocol over stdio.

Actions:
  echo     reply with the call's data
  fail     reply with success=false and data["message"] as the error
  legacy   reply without a data field ({"requestId": R, "v": 1})
  silent   never reply
  garbage  write a malformed line, then a valid reply
  split    write the reply in several flushed fragments
  slow     reply after data["seconds"] on a background thread
  stderr   log data["text"] to stderr, then reply
  exit     exit immediately with data["code"] (default 3)
"""

import json
import sys
import threading
import time

_write_lock = threading.Lock()


def _write(raw: str) -> None:
    with _write_lock:
        sys.stdout.write(raw)
        sys.stdout.flush()


def _reply(request_id, data=None, error=None) -> None:
    row = {"requestId": request_id, "success": error is None}
    if error is None:
        row["data"] = data
    else:
        row["error"] = error
    _write(json.dumps(row) + "\n")


def handle(call: dict) -> None:
    action = call.get("action")
    data = call.get("data")
    request_id = call.get("requestId")
    params = data if isinstance(data, dict) else {}

    if action == "echo":
        _reply(request_id, data)
    elif action == "fail":
        _reply(request_id, error=params.get("message", "boom"))
    elif action == "legacy":
        _write(json.dumps({"requestId": request_id, "v": 1}) + "\n")
    elif action == "silent":
        pass
    elif action == "garbage":
        _write("this is not json\n")
        _write("[1, 2, 3]\n")
        _reply(request_id, data)
    elif action == "split":
        frame = json.dumps({"requestId": request_id, "success": True, "data": data}) + "\n"
        step = max(1, len(frame) // 4)
        for i in range(0, len(frame), step):
            _write(frame[i:i + step])
            time.sleep(0.01)
    elif action == "slow":
        seconds = float(params.get("seconds", 0.2))

        def _later() -> None:
            time.sleep(seconds)
            _reply(request_id, data)

        threading.Thread(target=_later, daemon=True).start()
    elif action == "stderr":
        sys.stderr.write(str(params.get("text", "hello from worker")) + "\n")
        sys.stderr.flush()
        _reply(request_id, data)
    elif action == "exit":
        sys.stdout.flush()
        sys.exit(int(params.get("code", 3)))
    else:
        _reply(request_id, error=f"Unknown action: {action}")


def main() -> None:
    for line in sys.stdin:
        line = line.strip()
        if not line:
            continue
        try:
            call = json.loads(line)
        except json.JSONDecodeError:
            continue
        handle(call)


if __name__ == "__main__":
    main()
