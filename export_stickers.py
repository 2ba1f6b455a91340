#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Export device QR stickers from a store file into a print-ready PDF.
"""

# local repo modules
import qrsticker_engine.cli


if __name__ == "__main__":
	qrsticker_engine.cli.main()
