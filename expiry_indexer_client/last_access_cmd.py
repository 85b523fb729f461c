from __future__ import annotations

import logging
from typing import ClassVar, Final

from typing_extensions import Self

from common.config.config import Config
from common.utils.json_logger import logging_context
from .cmd_handler import BaseIndexerCmdHandler

_LOG = logging.getLogger(__name__)


class LastAccessHandler(BaseIndexerCmdHandler):
    command: ClassVar[str] = "last-access"
    #
    # protected:
    _account: Final[str] = "account"
    _storage: Final[str] = "storage"
    _expired: Final[str] = "expired"

    @classmethod
    async def new_arg_parser(cls, cfg: Config, cmd_list_parser) -> Self:
        self = cls(cfg)
        self._root_parser = cmd_list_parser.add_parser(self.command, help="query the last access of the state.")
        self._cmd_parser = self._root_parser.add_subparsers(
            title="command",
            dest="subcommand",
            description="valid commands",
        )

        self._account_parser = self._cmd_parser.add_parser(cls._account, help="last access block of the account")
        self._account_parser.add_argument("address", type=str, help="address of the account")
        self._subcmd_dict[cls._account] = self._account_cmd

        self._storage_parser = self._cmd_parser.add_parser(cls._storage, help="last access block of the storage slot")
        self._storage_parser.add_argument("address", type=str, help="address of the contract")
        self._storage_parser.add_argument("slot", type=str, help="storage slot key")
        self._subcmd_dict[cls._storage] = self._storage_cmd

        self._expired_parser = self._cmd_parser.add_parser(
            cls._expired,
            help="number of accounts and slots which weren't accessed since the block",
        )
        self._expired_parser.add_argument("block", type=int, help="expiry block number")
        self._subcmd_dict[cls._expired] = self._expired_cmd
        return self

    async def _account_cmd(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            state_db = await self._get_state_db()
            try:
                rec = await state_db.get_account_last_access(arg_space.address)
            except ValueError as exc:
                _LOG.error("wrong address %s: %s", arg_space.address, str(exc))
                return 1

            if not rec:
                print(f"{arg_space.address}: not found")
                return 0

            kind = "contract" if rec.is_contract else "EOA"
            print(f"{rec.address}: last access block {rec.last_access_block} ({kind})")
        return 0

    async def _storage_cmd(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            state_db = await self._get_state_db()
            try:
                block_num = await state_db.get_storage_last_access(arg_space.address, arg_space.slot)
            except ValueError as exc:
                _LOG.error("wrong address %s or slot %s: %s", arg_space.address, arg_space.slot, str(exc))
                return 1

            if block_num is None:
                print(f"{arg_space.address}:{arg_space.slot}: not found")
            else:
                print(f"{arg_space.address}:{arg_space.slot}: last access block {block_num}")
        return 0

    async def _expired_cmd(self, arg_space) -> int:
        req_id = self._gen_req_id()
        with logging_context(**req_id):
            if arg_space.block < 0:
                _LOG.error("block %s should be a positive number", arg_space.block)
                return 1

            state_db = await self._get_state_db()
            expired = await state_db.get_expired_state_cnt(arg_space.block)
            print(f"expired before the block {expired.expiry_block}:")
            print(f"\taccounts:  {expired.account_cnt}")
            print(f"\tcontracts: {expired.contract_cnt}")
            print(f"\tslots:     {expired.slot_cnt}")
        return 0
