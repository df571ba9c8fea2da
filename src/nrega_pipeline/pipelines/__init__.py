"""
nrega_pipeline.pipelines — End-to-end job orchestrators.

Each pipeline module exports a run() async function that takes its
collaborators as keyword arguments and returns a result dataclass. No
pipeline raises: failures are reported on the result.

    from nrega_pipeline.pipelines import district_sync, seed_geography

    result = await district_sync.run(financial_year="2024-2025")
"""
