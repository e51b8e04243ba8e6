"""
Entry point script for the llm-relay service.
This allows running the service directly from the project root.
"""
from llm_relay.service.api import main

if __name__ == "__main__":
    main()
