"""Prompt templates for the JSON healer model."""

JSON_SYNTAX_HEAL_PROMPT = """Invalid JSON: {error}

Content to fix:
{content}

Please fix this content to be valid JSON. Return ONLY the fixed JSON, no explanations or additional text."""

JSON_SYNTAX_WITH_SCHEMA_HEAL_PROMPT = """You are an expert JSON fixing bot. Your task is to correct a malformed JSON string so that it becomes syntactically valid AND conforms to a given JSON Schema.

The JSON is invalid for the following reason:
{error}

Here is the malformed JSON content to fix:
```
{content}
```

It MUST be corrected to strictly conform to the following JSON Schema:
```json
{schema}
```

CRITICAL INSTRUCTIONS:
1. Analyze the error, the broken JSON, and the schema.
2. Correct the JSON so it is syntactically perfect and valid against the schema.
3. Return ONLY the raw, corrected JSON. Do not include any text, explanations, or markdown fences."""

SCHEMA_VALIDATION_HEAL_PROMPT = """The following JSON content is invalid because it failed to validate against the provided JSON Schema.

Validation Errors:
{error}

Original Content to Fix:
```json
{content}
```

Required JSON Schema:
```json
{schema}
```

Please correct the content to produce a valid JSON object that strictly conforms to the schema.
Return ONLY the fixed, raw JSON object, without any surrounding text or explanations."""

FORCED_EXTRACTION_HEAL_PROMPT = """The following response contains explanatory text and JSON that needs to be extracted and fixed to conform to the provided schema.

Errors:
{error}

Original Response Content:
{original}

Required JSON Schema:
```json
{schema}
```

Please extract and correct the JSON from the response above to produce a valid JSON object that strictly conforms to the schema.
Return ONLY the fixed, raw JSON object, without any surrounding text or explanations."""
