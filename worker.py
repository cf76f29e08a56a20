#!/usr/bin/env python3
"""
Wrapper script for tag_renderer.worker.
Entry point for host applications that launch the worker by path.
"""

from tag_renderer.worker import main

if __name__ == "__main__":
    main()
