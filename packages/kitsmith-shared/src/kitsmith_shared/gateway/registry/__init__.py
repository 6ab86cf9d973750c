"""Image registry gateway.

Import from submodules:
- kitsmith_shared.gateway.registry.abc: ImageRegistry (ABC)
- kitsmith_shared.gateway.registry.real: FilesystemImageRegistry
- kitsmith_shared.gateway.registry.fake: FakeImageRegistry
- kitsmith_shared.gateway.registry.printing: PrintingImageRegistry
- kitsmith_shared.gateway.registry.types: Layer, ImageManifest, RegistryError
"""
