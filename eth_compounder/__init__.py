"""eth_compounder package root.

Auto-compounding vault and strategy pair running on an in-process simulated ledger.

- :py:mod:`eth_compounder.vault` issues shares against the pooled asset
- :py:mod:`eth_compounder.strategy` farms the pooled asset and compounds the rewards
- :py:mod:`eth_compounder.chain` provides the transaction and call-frame model

See :py:func:`eth_compounder.deployment.deploy_compounder` to get started.
"""

import sys


#: Minimum required Python version to run this package
MIN_PYTHON_VERSION = (3, 10)


def _check_python_version():
    """Try early abort if the Python version is too old."""

    # Use Python tuple comparison for version numbers
    # https://stackoverflow.com/a/1093331/315168
    if sys.version_info < MIN_PYTHON_VERSION:
        raise RuntimeError(f"eth-compounder needs Python {MIN_PYTHON_VERSION[0]}.{MIN_PYTHON_VERSION[1]} or later")


_check_python_version()
