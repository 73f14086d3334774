# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .cli import module_cli_entry_point

if __name__ == "__main__":
    module_cli_entry_point()
