"""
REST API for relaybridge.

Thin FastAPI layer over a running :class:`RelayBridgeService`: transaction
history, balances and the signed burn entry point.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, field_validator

from ..errors import NetworkError, ValidationError
from ..logging import get_logger

logger = get_logger(__name__)


class BurnRequest(BaseModel):
    """Signed burn request."""

    user: str = Field(..., description="Address whose tokens are burned")
    selectedNetwork: str = Field(..., description="Network to burn on")
    amount: str = Field(..., description="Amount in whole tokens, e.g. \"10.5\"")
    signature: str = Field(..., description="EIP-191 signature of keccak256(contract, amount)")
    contractAddress: Optional[str] = Field(None, description="Bridge contract the user signed for")

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_string(cls, v):
        if isinstance(v, float):
            raise ValueError("Amount must be a decimal string")
        return str(v)


class BurnResponse(BaseModel):
    success: bool
    txHash: str


class TransactionResponse(BaseModel):
    """One bridge transaction record."""

    id: str
    user: str
    network: str
    type: str
    amount: str
    txHash: Optional[str] = None
    txHashOriginator: Optional[str] = None
    relayTaskId: Optional[str] = None
    status: str
    createdAt: float
    updatedAt: Optional[float] = None


def create_app(service) -> FastAPI:
    """Build the API around ``service``."""
    app = FastAPI(
        title="relaybridge API",
        description="Burn-to-mint bridge relay",
        version="0.1.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def health() -> Dict[str, Any]:
        return service.status()

    @app.get("/transactions/history/{tx_hash}", response_model=List[TransactionResponse])
    async def get_transactions_by_hash(tx_hash: str):
        records = service.store.find_by_tx_hash_either_side(tx_hash)
        return [record.to_dict() for record in records]

    @app.get("/transactions/{user}", response_model=List[TransactionResponse])
    async def get_user_transactions(user: str):
        records = service.store.find_by_user(user)
        return [record.to_dict() for record in records]

    @app.get("/bridge/balance/{user}")
    async def get_balance(user: str) -> Dict[str, str]:
        try:
            return await service.burns.get_user_balance(user)
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)
        except NetworkError as e:
            logger.error(f"Balance lookup for {user} failed: {e}", exception=e)
            raise HTTPException(status_code=502, detail=e.message)

    @app.post("/bridge/burn", response_model=BurnResponse)
    async def burn(request: BurnRequest):
        try:
            return await service.burns.burn(
                user=request.user,
                amount=request.amount,
                network=request.selectedNetwork,
                signature=request.signature,
                contract_address=request.contractAddress,
            )
        except ValidationError as e:
            raise HTTPException(status_code=400, detail=e.message)
        except NetworkError as e:
            logger.error(f"Burn for {request.user} failed: {e}", exception=e)
            raise HTTPException(status_code=502, detail=e.message)

    return app
