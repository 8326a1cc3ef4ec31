"""SEL Insights: question resolution and data-quality engine for SEL surveys."""
