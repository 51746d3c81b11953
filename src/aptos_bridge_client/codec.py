"""
Operation and event codec for the bridge module.

This module turns typed mint/burn arguments into the BCS argument bytes the
entry functions expect, and turns raw indexer event rows back into typed
Mint/Burn events. Everything here is pure and deterministic.
"""

import logging
from typing import Any, Mapping, Sequence

from aptos_sdk.account_address import AccountAddress
from aptos_sdk.bcs import Deserializer, Serializer

from .constants import BURN_EVENT, BRIDGE_MODULE, MINT_EVENT, qualified_name
from .errors import EncodingFailed, EventDecodeFailed
from .models import (
    BridgeEvent,
    BurnEvent,
    BurnRequest,
    InclusionProof,
    MintEvent,
    Peg,
    RawEvent,
    ScriptType,
)
from .utils.address import canonical_address, format_account_address, parse_account_address

logger = logging.getLogger(__name__)

MAX_U64 = 2**64 - 1


def _check_u64(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingFailed(f"{name} must be an integer, got {type(value).__name__}")
    if not 0 <= value <= MAX_U64:
        raise EncodingFailed(f"{name} out of u64 range: {value}")


class OperationCodec:
    """Encoders and decoders for bridge entry-function arguments and events."""

    @staticmethod
    def check_inclusion_proof(proof: InclusionProof) -> None:
        """
        Reject proofs whose transaction index cannot exist in a tree of the given depth.

        The Merkle math itself is verified on-chain; this only catches an
        index that does not fit in ``len(merkle_proof)`` levels.

        Raises:
            EncodingFailed: If ``tx_index`` is out of range
        """
        depth = len(proof.merkle_proof)
        if proof.tx_index < 0 or proof.tx_index >= 2 ** depth:
            raise EncodingFailed(
                f"tx_index {proof.tx_index} out of range for a Merkle proof of depth {depth}"
            )

    @staticmethod
    def _write_inclusion_proof(serializer: Serializer, proof: InclusionProof) -> None:
        OperationCodec.check_inclusion_proof(proof)
        serializer.to_bytes(proof.block_header)
        serializer.to_bytes(proof.tx_id)
        serializer.u64(proof.tx_index)
        # Node order is kept exactly as supplied
        serializer.sequence(list(proof.merkle_proof), Serializer.to_bytes)
        serializer.to_bytes(proof.raw_tx)

    @staticmethod
    def _write_peg(serializer: Serializer, peg: Peg) -> None:
        if not isinstance(peg.script_type, ScriptType):
            try:
                ScriptType(peg.script_type)
            except ValueError:
                raise EncodingFailed(f"Unknown script type: {peg.script_type!r}") from None
        for name in ("value", "block_num", "tx_out_ix"):
            _check_u64(name, getattr(peg, name))
        serializer.struct(parse_account_address(peg.to))
        serializer.u64(peg.value)
        serializer.u64(peg.block_num)
        OperationCodec._write_inclusion_proof(serializer, peg.inclusion_proof)
        serializer.u64(peg.tx_out_ix)
        serializer.to_bytes(peg.dest_script_hash)
        serializer.u8(int(peg.script_type))

    @staticmethod
    def encode_pegs(pegs: Sequence[Peg]) -> bytes:
        """
        Encode pegs as the single ``vector<Peg>`` argument of the mint entry function.

        Args:
            pegs: Pegs to encode, in submission order

        Returns:
            BCS bytes of the peg vector

        Raises:
            EncodingFailed: If any peg holds a malformed field
        """
        serializer = Serializer()
        try:
            serializer.sequence(list(pegs), OperationCodec._write_peg)
        except EncodingFailed:
            raise
        except (TypeError, ValueError) as e:
            raise EncodingFailed(f"Cannot encode pegs: {e}") from e
        return serializer.output()

    @staticmethod
    def encode_burn_args(request: BurnRequest) -> list[bytes]:
        """
        Encode a burn request as the four entry-function arguments.

        Returns:
            ``[btc_address, fee_rate, amount, operator_id]``, each BCS encoded

        Raises:
            EncodingFailed: If a numeric field does not fit in a u64
        """
        for name in ("fee_rate", "amount", "operator_id"):
            _check_u64(name, getattr(request, name))
        if not isinstance(request.btc_address, str):
            raise EncodingFailed("btc_address must be a string")

        args = []
        try:
            for write, value in (
                (Serializer.str, request.btc_address),
                (Serializer.u64, request.fee_rate),
                (Serializer.u64, request.amount),
                (Serializer.u64, request.operator_id),
            ):
                serializer = Serializer()
                write(serializer, value)
                args.append(serializer.output())
        except UnicodeError as e:
            raise EncodingFailed(f"Cannot encode burn request: {e}") from e
        return args

    @staticmethod
    def _read_inclusion_proof(deserializer: Deserializer) -> InclusionProof:
        return InclusionProof(
            block_header=deserializer.to_bytes(),
            tx_id=deserializer.to_bytes(),
            tx_index=deserializer.u64(),
            merkle_proof=tuple(deserializer.sequence(Deserializer.to_bytes)),
            raw_tx=deserializer.to_bytes(),
        )

    @staticmethod
    def _read_peg(deserializer: Deserializer) -> Peg:
        return Peg(
            to=format_account_address(AccountAddress.deserialize(deserializer)),
            value=deserializer.u64(),
            block_num=deserializer.u64(),
            inclusion_proof=OperationCodec._read_inclusion_proof(deserializer),
            tx_out_ix=deserializer.u64(),
            dest_script_hash=deserializer.to_bytes(),
            script_type=ScriptType(deserializer.u8()),
        )

    @staticmethod
    def decode_pegs(data: bytes) -> list[Peg]:
        """
        Decode the mint argument produced by :meth:`encode_pegs`.

        Raises:
            EncodingFailed: If the bytes are not a valid peg vector
        """
        deserializer = Deserializer(data)
        try:
            pegs = deserializer.sequence(OperationCodec._read_peg)
        # aptos_sdk's Deserializer reports truncated input with a plain Exception
        except Exception as e:
            raise EncodingFailed(f"Cannot decode pegs: {e}") from e
        if deserializer.remaining():
            raise EncodingFailed(f"Cannot decode pegs: {deserializer.remaining()} trailing bytes")
        return pegs

    @staticmethod
    def decode_burn_request(args: Sequence[bytes]) -> BurnRequest:
        """Decode the four burn arguments produced by :meth:`encode_burn_args`."""
        if len(args) != 4:
            raise EncodingFailed(f"Burn takes 4 arguments, got {len(args)}")
        readers = [Deserializer(arg) for arg in args]
        try:
            request = BurnRequest(
                btc_address=readers[0].str(),
                fee_rate=readers[1].u64(),
                amount=readers[2].u64(),
                operator_id=readers[3].u64(),
            )
        except Exception as e:
            raise EncodingFailed(f"Cannot decode burn arguments: {e}") from e
        if any(reader.remaining() for reader in readers):
            raise EncodingFailed("Cannot decode burn arguments: trailing bytes")
        return request

    @staticmethod
    def event_kind(type_tag: str, contract_address: str) -> str:
        """
        Return the event struct name if ``type_tag`` belongs to the bridge module.

        Raises:
            EventDecodeFailed: If the tag is malformed or from another module
        """
        parts = type_tag.split("::")
        if len(parts) != 3:
            raise EventDecodeFailed(f"Malformed event type tag: {type_tag!r}")
        address, module, name = parts
        try:
            same_contract = parse_account_address(address) == parse_account_address(contract_address)
        except ValueError:
            raise EventDecodeFailed(f"Malformed event type tag: {type_tag!r}") from None
        if not same_contract or module != BRIDGE_MODULE:
            raise EventDecodeFailed(f"Event type {type_tag!r} is not emitted by the bridge module")
        return name

    @staticmethod
    def decode_event(raw: RawEvent, contract_address: str) -> BridgeEvent:
        """
        Decode a raw stream entry into a typed Mint or Burn event.

        Args:
            raw: Undecoded event with its type discriminant
            contract_address: Bridge contract the stream belongs to

        Returns:
            MintEvent or BurnEvent

        Raises:
            EventDecodeFailed: On unknown discriminants or missing/malformed fields
        """
        try:
            kind = OperationCodec.event_kind(raw.type_tag, contract_address)
        except EventDecodeFailed as e:
            raise EventDecodeFailed(str(e), version=raw.version) from None

        data: Mapping[str, Any] = raw.data
        try:
            match kind:
                case "Mint":
                    return MintEvent(
                        version=raw.version,
                        event_index=raw.event_index,
                        to=_address_field(data, "to_address"),
                        amount=_u64_field(data, "amount"),
                        btc_tx_id=_hex_field(data, "btc_tx_id"),
                        btc_block_num=_u64_field(data, "btc_block_num"),
                        timestamp=_u64_field(data, "timestamp"),
                    )
                case "Burn":
                    return BurnEvent(
                        version=raw.version,
                        event_index=raw.event_index,
                        sender=_address_field(data, "from"),
                        btc_address=_str_field(data, "btc_address"),
                        fee_rate=_u64_field(data, "fee_rate"),
                        amount=_u64_field(data, "amount"),
                        operator_id=_u64_field(data, "operator_id"),
                        timestamp=_u64_field(data, "timestamp"),
                    )
                case _:
                    raise EventDecodeFailed(f"Unknown bridge event type: {kind}", version=raw.version)
        except (KeyError, TypeError, ValueError) as e:
            raise EventDecodeFailed(f"Malformed {kind} event payload: {e}", version=raw.version) from e


def _field(data: Mapping[str, Any], name: str) -> Any:
    if name not in data or data[name] is None:
        raise KeyError(f"missing field {name!r}")
    return data[name]


def _u64_field(data: Mapping[str, Any], name: str) -> int:
    match _field(data, name):
        case bool():
            raise TypeError(f"field {name!r} is a bool")
        case int() as value:
            pass
        case str() as text:
            value = int(text)
        case other:
            raise TypeError(f"field {name!r} has unexpected type {type(other).__name__}")
    if value < 0 or value >= 2**64:
        raise ValueError(f"field {name!r} out of u64 range: {value}")
    return value


def _str_field(data: Mapping[str, Any], name: str) -> str:
    value = _field(data, name)
    if not isinstance(value, str):
        raise TypeError(f"field {name!r} is not a string")
    return value


def _hex_field(data: Mapping[str, Any], name: str) -> bytes:
    value = _str_field(data, name)
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def _address_field(data: Mapping[str, Any], name: str) -> str:
    return canonical_address(_str_field(data, name))


def mint_event_type(contract_address: str) -> str:
    return qualified_name(contract_address, MINT_EVENT)


def burn_event_type(contract_address: str) -> str:
    return qualified_name(contract_address, BURN_EVENT)
