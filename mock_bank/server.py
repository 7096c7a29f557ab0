from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pathlib import Path
import json
import os

app = FastAPI(title="Mock Bank History Server", version="1.0.0")
# Support both local development and Docker
DATA_DIR = Path(os.environ.get("MOCK_BANK_DATA_DIR", Path(__file__).resolve().parent / "data"))

@app.get("/health")
def health(): return {"status": "ok"}

@app.get("/history/{account}")
def get_history(account: str):
    # ledger_* files answer with a bare array, envelope_* files with {code, des, transactions}
    file = DATA_DIR / f"{account}.json"
    if not file.is_file() or file.resolve().parent != DATA_DIR.resolve():
        raise HTTPException(status_code=404, detail="account not found")
    return JSONResponse(content=json.loads(file.read_text(encoding="utf-8")))
