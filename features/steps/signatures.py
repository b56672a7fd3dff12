import typing

from behave import given, use_step_matcher, when

from safe_signatures import signature_codec
from safe_signatures.account import Account
from safe_signatures.address import Address
from safe_signatures.handler import CompatibilityFallbackHandler
from safe_signatures.hash_domain import keccak256
from safe_signatures.signature_codec import ApprovedHashSignature
from safe_signatures.wallet import Wallet, WalletConfig

# Use regular expressions
use_step_matcher("re")


@given(
    r"a (?P<threshold>[0-9]+)-of-(?P<count>[0-9]+) wallet at (?P<address>\S+) on chain (?P<chain_id>[0-9]+)"
)
def given_wallet(
    context: typing.Any, threshold: str, count: str, address: str, chain_id: str
):
    context.accounts = sorted(
        [Account.generate() for _ in range(int(count))],
        key=lambda account: account.address(),
    )
    context.handler = CompatibilityFallbackHandler()
    context.wallet = Wallet(
        Address.from_str(address),
        WalletConfig(
            int(chain_id),
            [account.address() for account in context.accounts],
            int(threshold),
            context.handler,
        ),
    )
    context.signatures = []


@when(r"the wallet signs (?P<hash_type>[a-z]+) (?P<value>\S+)")
def when_wallet_signs(context: typing.Any, hash_type: str, value: str):
    context.wallet.sign_message(parse_message(hash_type, value))


@when(
    r"owners (?P<indices>[0-9,]+) (?P<method>sign|eth_sign|approve) (?P<hash_type>[a-z]+) (?P<value>\S+)"
)
def when_owners_sign(
    context: typing.Any, indices: str, method: str, hash_type: str, value: str
):
    message_hash = context.wallet.domain().digest(parse_message(hash_type, value))
    for index in indices.split(","):
        account = context.accounts[int(index) - 1]
        if method == "sign":
            entry = account.sign_digest(message_hash)
        elif method == "eth_sign":
            entry = account.eth_sign_digest(message_hash)
        else:
            context.wallet.approve_hash(account.address(), message_hash)
            entry = ApprovedHashSignature(account.address())
        context.signatures.append((account.address(), entry))


@when(
    r"I call the handler directly with (?P<hash_type>[a-z]+) (?P<value>\S+) and signature (?P<signature>\S+)"
)
def when_call_directly(
    context: typing.Any, hash_type: str, value: str, signature: str
):
    try:
        context.output = context.handler.is_valid_signature(
            None, parse_message(hash_type, value), parse_hex(signature)
        )
    except Exception as e:
        context.output = e


@when(
    r"I validate (?P<hash_type>[a-z]+) (?P<value>\S+) with signature (?P<signature>\S+)"
)
def when_validate(context: typing.Any, hash_type: str, value: str, signature: str):
    validate(context, parse_message(hash_type, value), parse_hex(signature))


@when(
    r"I validate (?P<hash_type>[a-z]+) (?P<value>\S+) with the collected signatures(?P<reverse> reversed)?"
)
def when_validate_collected(
    context: typing.Any, hash_type: str, value: str, reverse: typing.Optional[str]
):
    if reverse:
        ordered = sorted(context.signatures, key=lambda item: item[0], reverse=True)
        blob = signature_codec.encode([entry for _, entry in ordered])
    else:
        blob = signature_codec.encode_sorted(context.signatures)
    validate(context, parse_message(hash_type, value), blob)


def validate(context: typing.Any, data_hash: bytes, signature: bytes):
    try:
        context.output = context.wallet.fallback().is_valid_signature(
            data_hash, signature
        )
    except Exception as e:
        context.output = e


def parse_message(hash_type: str, value: str) -> bytes:
    if hash_type == "keccak":
        return keccak256(parse_hex(value))
    elif hash_type == "bytes":
        return parse_hex(value)
    raise Exception("Unrecognized message type")


def parse_hex(input_value: str) -> bytes:
    return bytes.fromhex(input_value.removeprefix("0x"))
