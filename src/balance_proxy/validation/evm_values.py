from typing import Annotated

from eth_typing import ChecksumAddress
from pydantic import BeforeValidator, Field

from balance_proxy.checksum_cache import get_checksum_address
from balance_proxy.constants import (
    MAX_INT256,
    MAX_UINT8,
    MAX_UINT256,
    MIN_INT256,
    MIN_UINT8,
    MIN_UINT256,
)

type ValidatedInt256 = Annotated[int, Field(strict=True, ge=MIN_INT256, le=MAX_INT256)]

type ValidatedUint8 = Annotated[int, Field(strict=True, ge=MIN_UINT8, le=MAX_UINT8)]
type ValidatedUint256 = Annotated[int, Field(strict=True, ge=MIN_UINT256, le=MAX_UINT256)]

type ValidatedSlippage = Annotated[float, Field(ge=0, le=100)]

type ValidatedAddress = Annotated[ChecksumAddress, BeforeValidator(get_checksum_address)]
