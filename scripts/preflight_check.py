#!/usr/bin/env python3
import sys
import os

print("Running preflight check...")
try:
    # Set dummy env vars to avoid KeyErrors during config load if any
    os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")

    import selfservice.main
    print("Import selfservice.main: OK")

    from selfservice.core.flow import load_flows
    from selfservice.settings import settings

    flows = load_flows(settings.FLOWS_CONFIG_PATH)
    for name, flow in sorted(flows.items()):
        print(f"Flow {name}: {' -> '.join(b.tag for b in flow.stages)}")

    from selfservice.store.token_codec import get_token_codec

    codec = get_token_codec()
    print(f"Token codec ({settings.TOKEN_MODE}): {type(codec).__name__}")

    print("Preflight check passed.")
    sys.exit(0)
except Exception as e:
    print(f"Preflight check FAILED: {e}")
    import traceback
    traceback.print_exc()
    sys.exit(1)
