DEFAULT_PORT = 50001
DEFAULT_MODEL_NAME = "gemini-2.5-flash"
WORKFLOW_NAME = "ai_cypher_query_generator"
WORKFLOW_TOPIC = "workflows"

AUDIT_STATUS_SUCCESS = "SUCCESS"
AUDIT_ID_PREFIX = "audit_"

STATIC_CYPHER_QUERY = (
    'MATCH (p:Person {name: "Keanu Reeves"})-[:ACTED_IN]->(m:Movie) RETURN m.title;'
)

# Clauses that mutate the graph or reach outside of it.
UNSAFE_CYPHER_CLAUSES = (
    "CREATE",
    "MERGE",
    "DELETE",
    "DETACH",
    "SET",
    "REMOVE",
    "DROP",
    "LOAD CSV",
    "CALL",
)
