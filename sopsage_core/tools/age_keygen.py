# sopsage_core/tools/age_keygen.py
from sopsage_core.keys import AgeKey
from sopsage_core.logger import get_logger
from sopsage_core.tools.tool_base import BaseTool

log = get_logger("SOPSAge.Tools.AgeKeygen")


class AgeKeygen(BaseTool):
    """
    Generates keys by running `age-keygen` with no arguments.

    age-keygen prints the three-line record on stdout (the human hint
    "Public key: ..." goes to stderr and is ignored).
    """

    name = "age-keygen"

    async def generate(self) -> AgeKey:
        result = await self.runner.run(self.argv())
        result.raise_for_status()
        key = AgeKey.from_text(result.stdout)
        log.info(f"[AGE-KEYGEN] new key fp={key.fingerprint}")
        return key
