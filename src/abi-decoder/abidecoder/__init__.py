from .abi import EventSignature, InterfaceDefinition, MethodSignature, Parameter, merge_abis, parse_abi
from .bytecode import TokenStandard, classify, matches_all
from .cache import ContractMetadata, ContractMetadataCache
from .decoder import AbiDecoder, DecodedCall, DecodedEvent, LogEntry, decode_log, decode_method
from .errors import (
    AbiDecoderError,
    CollaboratorTimeout,
    CollaboratorUnavailable,
    ConfigurationError,
    DecodeError,
    NotFoundError,
    ParseError,
    ResolutionCancelled,
    RpcError,
)
from .normalizer import normalize
from .registry import AbiRegistry, IndexedContract

__version__ = "0.1.0"
