"""smiprobe Quick Start: poll nvidia-smi once and print each GPU."""

import asyncio

import smiprobe


async def main() -> None:
    # 1. Poll once (empty list if nvidia-smi is missing or fails)
    samples = await smiprobe.get_device_info()
    if not samples:
        print("No GPU telemetry available")
        return

    # 2. Each sample is one GPU; unsupported sensors are None
    for gpu in samples:
        print(
            f"{gpu.name} [{gpu.pci_bus}] "
            f"util={gpu.utilization_gpu}% "
            f"mem={gpu.memory_used}/{gpu.memory_total} MiB "
            f"temp={gpu.temperature_gpu} C "
            f"power={gpu.power_draw}/{gpu.power_limit} W"
        )


if __name__ == "__main__":
    asyncio.run(main())
