"""
Ledger-facing pool processing: block callbacks, auxiliary data, processor
"""

from .aux_data import AuxiliaryData, decode_auxiliary_data, decode_pool_transaction, encode_auxiliary_data
from .callbacks import BlockCallback, BlockCallbackEntry, BlockCallbackRegistry, block_callback_for
from .config import ProcessorConfig
from .ledger import DepositOptions, Ledger, PoolContract, RebalanceOptions, TransferOptions
from .processor import AmmPool, ProcessedTransaction, ProcessingStage

__all__ = [
    "AuxiliaryData",
    "decode_auxiliary_data",
    "decode_pool_transaction",
    "encode_auxiliary_data",
    "BlockCallback",
    "BlockCallbackEntry",
    "BlockCallbackRegistry",
    "block_callback_for",
    "ProcessorConfig",
    "DepositOptions",
    "Ledger",
    "PoolContract",
    "RebalanceOptions",
    "TransferOptions",
    "AmmPool",
    "ProcessedTransaction",
    "ProcessingStage",
]
