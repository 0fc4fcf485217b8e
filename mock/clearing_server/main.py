from datetime import datetime, timezone
from typing import Optional
import os
import uuid

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

app = FastAPI(title="Mock Clearing Server", version="1.0.0")

# Destinations the clearing house refuses (closed accounts)
REJECTED_ACCOUNTS = set(
    filter(None, os.getenv("CLEARING_REJECTED_ACCOUNTS", "0110000000000000000099,9999999999").split(","))
)


class ClearingTransferIn(BaseModel):
    transfer_id: str
    account_number: str
    amount_cents: int
    reference: Optional[str] = None


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/clearing/transfers")
def submit_transfer(body: ClearingTransferIn):
    if body.amount_cents <= 0:
        raise HTTPException(status_code=400, detail="amount must be positive")
    if body.account_number in REJECTED_ACCOUNTS:
        raise HTTPException(status_code=422, detail="destination account closed")
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return {
        "operation_number": f"EXT-{uuid.uuid4().hex[:12].upper()}",
        "accepted_at": now.isoformat(),
        "transfer_id": body.transfer_id,
    }
