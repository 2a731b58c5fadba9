"""
Supplier Engine - matching, rating and distribution for the fabrication marketplace.

Components:
- rating/        - composite supplier rating (0-100) with cache-aside lookups
- matching/      - candidate selection for new projects
- distribution/  - batched fan-out of project notifications
- jobs/          - durable distribution queue and worker
- ranking/       - comparative quote scoring
- quotes/        - quote lifecycle
- notifications/ - conversation messaging
- service.py     - main coordinator

Quick Start:
    from supplier_engine.service import SupplierEngineService
    import asyncio

    async def main():
        service = SupplierEngineService()
        await service.initialize()
        await service.start()

    asyncio.run(main())
"""

__version__ = '0.1.0'

__all__ = ['__version__']
