"""
Stacks (STX) wallet operations.

STXWallet holds the per-process context (config, identity, nonce
sequencer, fee strategies) and runs each write as:

    validate -> reserve(address) -> nonce -> [eligibility] -> build
             -> sign -> broadcast (or dry run) -> mark consumed

Reads go straight to the API client.
"""

from __future__ import annotations

import logging
from typing import Any

from stx_api import (
    call_read_only,
    get_balance,
    get_network_info,
    get_nonce_hint,
    get_pox_info,
    get_transaction,
)
from stx_broadcast import explorer_url, submit
from stx_clarity import to_json_value
from stx_config import STXConfig
from stx_errors import TransactionValidationError
from stx_identity import STXIdentity, parse_contract_id, resolve_identity, validate_address
from stx_nonce import NonceSequencer
from stx_signer import sign
from stx_stacking import check_eligibility
from stx_stacking import get_stacking_info as _get_stacking_info
from stx_transactions import (
    FeeStrategy,
    FixedFeeStrategy,
    NetworkFeeStrategy,
    TransactionKind,
    build_intent,
    validate_params,
)

logger = logging.getLogger(__name__)


def parse_asset_id(asset: str) -> tuple[str, str, str]:
    """Split 'SP....contract-name::asset-name' into its three parts."""
    parts = (asset or "").strip().split("::")
    if len(parts) != 2 or not parts[1]:
        raise TransactionValidationError(
            "Asset must be in format 'contract_address.contract_name::asset_name'"
        )
    contract_address, contract_name = parse_contract_id(parts[0])
    return contract_address, contract_name, parts[1]


class STXWallet:
    """One account on one network."""

    def __init__(
        self,
        cfg: STXConfig,
        identity: STXIdentity,
        sequencer: NonceSequencer | None = None,
        fee_strategy: FeeStrategy | None = None,
        stacking_fee_strategy: FeeStrategy | None = None,
    ):
        if identity.network != cfg.network:
            raise ValueError(
                f"Identity network {identity.network} does not match config network {cfg.network}"
            )
        self.cfg = cfg
        self.identity = identity
        self.sequencer = sequencer or NonceSequencer(lambda address: get_nonce_hint(cfg, address))
        self.fee_strategy = fee_strategy or FixedFeeStrategy()
        self.stacking_fee_strategy = stacking_fee_strategy or NetworkFeeStrategy(cfg)

    def __repr__(self) -> str:
        return f"STXWallet(address={self.address!r}, network={self.cfg.network!r})"

    @classmethod
    def from_config(cls, cfg: STXConfig) -> STXWallet:
        identity = resolve_identity(
            cfg.network,
            private_key=cfg.private_key,
            mnemonic=cfg.mnemonic,
            passphrase=cfg.mnemonic_passphrase,
        )
        return cls(cfg, identity)

    @classmethod
    def from_env(cls) -> STXWallet:
        return cls.from_config(STXConfig.from_env())

    @property
    def address(self) -> str:
        return self.identity.address

    # -----------------------------------------------------------------------
    # Write path
    # -----------------------------------------------------------------------

    def _execute(
        self,
        kind: TransactionKind,
        params: dict[str, Any],
        fee: int | None = None,
        dry_run: bool | None = None,
        stacking: bool = False,
    ) -> dict[str, Any]:
        if dry_run is None:
            dry_run = self.cfg.dry_run_default
        network = self.cfg.network

        # Nothing touches the network until the parameters are known good.
        validate_params(kind, network, **params)
        strategy = self.stacking_fee_strategy if stacking else self.fee_strategy

        with self.sequencer.reserve(self.address):
            nonce = self.sequencer.next_nonce(self.address)

            eligibility = None
            if stacking:
                pox_info = get_pox_info(self.cfg)
                if params.get("start_burn_height") is None:
                    params["start_burn_height"] = int(pox_info["current_burnchain_block_height"])
                if not params.get("pox_contract"):
                    params["pox_contract"] = pox_info.get("contract_id") or None
                eligibility = check_eligibility(
                    self.cfg,
                    self.address,
                    params["reward_address"],
                    params["cycles"],
                    amount_ustx=params["amount_ustx"],
                    start_burn_height=params["start_burn_height"],
                    pox_info=pox_info,
                )
                if not eligibility.eligible:
                    return {
                        "success": False,
                        "txid": "",
                        "error": f"Not eligible to stack: {eligibility.reason}",
                        "eligibility": eligibility.to_dict(),
                        "kind": kind.value,
                        "sender": self.address,
                        "network": network,
                    }

            intent = build_intent(
                kind, self.identity, nonce, fee=fee, fee_strategy=strategy, **params
            )
            signed = sign(intent, self.identity)
            logger.info(
                "Signed %s from %s nonce=%d fee=%d txid=%s",
                kind.value, self.address, intent.nonce, intent.fee, signed.txid,
            )

            result = intent.describe()
            result["tx_hex"] = signed.hex
            if eligibility is not None:
                result["eligibility"] = eligibility.to_dict()

            if dry_run:
                result.update(
                    {"success": True, "dry_run": True, "txid": signed.txid, "error": None}
                )
                return result

            broadcast = submit(self.cfg, signed)
            result.update(broadcast.to_dict())
            result["dry_run"] = False
            return result

    def transfer_stx(
        self,
        recipient: str,
        amount_ustx: int,
        memo: str = "",
        fee: int | None = None,
        dry_run: bool | None = None,
    ) -> dict[str, Any]:
        """Transfer STX to a recipient."""
        return self._execute(
            TransactionKind.TRANSFER,
            {"recipient": recipient, "amount_ustx": amount_ustx, "memo": memo},
            fee=fee,
            dry_run=dry_run,
        )

    def call_contract(
        self,
        contract_address: str,
        contract_name: str,
        function_name: str,
        function_args: list[str] | None = None,
        fee: int | None = None,
        dry_run: bool | None = None,
    ) -> dict[str, Any]:
        """Call a public Clarity function."""
        return self._execute(
            TransactionKind.CONTRACT_CALL,
            {
                "contract_address": contract_address,
                "contract_name": contract_name,
                "function_name": function_name,
                "function_args": list(function_args or []),
            },
            fee=fee,
            dry_run=dry_run,
        )

    def transfer_fungible_token(
        self,
        asset: str,
        amount: int,
        recipient: str,
        memo: str | None = None,
        fee: int | None = None,
        dry_run: bool | None = None,
    ) -> dict[str, Any]:
        """
        Transfer a SIP-010 fungible token.

        asset: 'SP....contract-name::token-name'
        """
        contract_address, contract_name, asset_name = parse_asset_id(asset)
        return self._execute(
            TransactionKind.FUNGIBLE_TRANSFER,
            {
                "contract_address": contract_address,
                "contract_name": contract_name,
                "asset_name": asset_name,
                "amount": amount,
                "recipient": recipient,
                "memo": memo,
            },
            fee=fee,
            dry_run=dry_run,
        )

    def transfer_nft(
        self,
        asset: str,
        token_id: Any,
        recipient: str,
        fee: int | None = None,
        dry_run: bool | None = None,
    ) -> dict[str, Any]:
        """Transfer a SIP-009 NFT. token_id is a uint or a Clarity value string."""
        contract_address, contract_name, asset_name = parse_asset_id(asset)
        return self._execute(
            TransactionKind.NFT_TRANSFER,
            {
                "contract_address": contract_address,
                "contract_name": contract_name,
                "asset_name": asset_name,
                "token_id": token_id,
                "recipient": recipient,
            },
            fee=fee,
            dry_run=dry_run,
        )

    def stack_stx(
        self,
        amount_ustx: int,
        reward_address: str,
        cycles: int,
        signer_key: str,
        signer_signature: str | None = None,
        max_amount: int | None = None,
        auth_id: int = 0,
        start_burn_height: int | None = None,
        fee: int | None = None,
        dry_run: bool | None = None,
    ) -> dict[str, Any]:
        """
        Solo stacking through pox-4 stack-stx.

        Runs the eligibility check first; an ineligible account gets a
        structured refusal and nothing is broadcast. When eligibility
        cannot be verified the transaction is still broadcast.
        """
        return self._execute(
            TransactionKind.STAKE_DELEGATE,
            {
                "amount_ustx": amount_ustx,
                "cycles": cycles,
                "reward_address": reward_address,
                "signer_key": signer_key,
                "signer_signature": signer_signature,
                "max_amount": max_amount,
                "auth_id": auth_id,
                "start_burn_height": start_burn_height,
                "pox_contract": None,
            },
            fee=fee,
            dry_run=dry_run,
            stacking=True,
        )

    # -----------------------------------------------------------------------
    # Read path
    # -----------------------------------------------------------------------

    def _address_or_own(self, address: str | None) -> str:
        if not address:
            return self.address
        validate_address(address)
        return address.strip()

    def get_wallet_info(self) -> dict[str, Any]:
        info = self.identity.public_info()
        info.update(
            {
                "api_url": self.cfg.hiro_api_url,
                "explorer_url": self.cfg.explorer_url,
                "dry_run_default": self.cfg.dry_run_default,
            }
        )
        return info

    def get_balance(self, address: str | None = None) -> dict[str, Any]:
        snapshot = get_balance(self.cfg, self._address_or_own(address))
        result = snapshot.to_dict()
        result["network"] = self.cfg.network
        return result

    def get_nonce(self, address: str | None = None) -> dict[str, Any]:
        address = self._address_or_own(address)
        return {"address": address, "nonce": get_nonce_hint(self.cfg, address), "network": self.cfg.network}

    def get_network_info(self) -> dict[str, Any]:
        info = get_network_info(self.cfg)
        return {
            "network": self.cfg.network,
            "api_url": self.cfg.hiro_api_url,
            "network_id": info.get("network_id"),
            "stacks_tip_height": info.get("stacks_tip_height"),
            "burn_block_height": info.get("burn_block_height"),
            "server_version": info.get("server_version"),
            "raw": info,
        }

    def read_contract(
        self,
        contract_id: str,
        function_name: str,
        function_args: list[str] | None = None,
        sender: str | None = None,
    ) -> dict[str, Any]:
        """Read-only call; the result is decoded to native values."""
        contract_address, contract_name = parse_contract_id(contract_id)
        value = call_read_only(
            self.cfg,
            contract_address,
            contract_name,
            function_name,
            function_args,
            sender=sender or self.address,
        )
        return {
            "contract": f"{contract_address}.{contract_name}",
            "function_name": function_name,
            "result": to_json_value(value),
        }

    def get_transaction(self, txid: str) -> dict[str, Any]:
        tx = get_transaction(self.cfg, txid)
        return {
            "txid": tx.get("tx_id", txid),
            "tx_status": tx.get("tx_status"),
            "tx_type": tx.get("tx_type"),
            "block_height": tx.get("block_height"),
            "explorer_url": explorer_url(self.cfg, tx.get("tx_id", txid)),
            "raw": tx,
        }

    def check_stacking(
        self,
        reward_address: str,
        cycles: int,
        amount_ustx: int | None = None,
        address: str | None = None,
    ) -> dict[str, Any]:
        result = check_eligibility(
            self.cfg, self._address_or_own(address), reward_address, cycles, amount_ustx=amount_ustx
        )
        return result.to_dict()

    def get_stacking_info(self, address: str | None = None) -> dict[str, Any]:
        return _get_stacking_info(self.cfg, self._address_or_own(address))
