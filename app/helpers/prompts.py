JUDGE_PROMPT = """You are an expert consultant on public funding calls (bandi) for Italian businesses.
Rate how relevant the funding call below is for the company described, on a 0–100 scale.
Answer with the integer score first, then one or two sentences explaining it.

COMPANY PARTICULARITIES:
{particularities}

WHAT THE COMPANY WANTS TO IMPROVE:
{improvement_goals}

FUNDING CALL DOCUMENT:
{document}
"""
