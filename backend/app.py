import os

from flask import Flask, request, jsonify
from flask_cors import CORS
import exprcc

app = Flask(__name__)
CORS(app)  # allow cross-origin requests

def ast_to_dict(node):
    """
    Serialize AST to dict recursively
    """
    if node is None:
        return None
    d = {"type": type(node).__name__, "kind": node.kind}
    if isinstance(node, exprcc.BinaryOp):
        d["left"] = ast_to_dict(node.left)
        d["right"] = ast_to_dict(node.right)
    elif isinstance(node, exprcc.Number):
        d["value"] = node.value
    return d

def empty_response(errors, diagnostic=None):
    return {
        "tokens": [],
        "ast": {},
        "assembly": [],
        "result": None,
        "exit_code": None,
        "errors": errors,
        "diagnostic": diagnostic,
    }

@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok"})

@app.route("/compile", methods=["POST"])
def compile_code():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    code = data.get("code")
    if not isinstance(code, str):
        err = exprcc.CompileError("Usage", "request body must carry a string 'code' field")
        return jsonify(empty_response([str(err)], err.msg))

    app.logger.info("compiling %r", code)
    try:
        result = exprcc.compile_source(code, verbose=False)

        # Process tokens to match terminal format
        processed_tokens = []
        for token in result['tokens']:
            if token.kind != exprcc.TK_EOF:
                processed_tokens.append({
                    "kind": token.kind,
                    "text": token.text,
                    "pos": token.pos,
                    "value": token.value
                })

        err = result['error']
        output = result['output']
        response = {
            "tokens": processed_tokens,
            "ast": ast_to_dict(result['ast']) or {},
            "assembly": result['asm'],
            "result": output,
            "exit_code": output & 0xff if output is not None else None,
            "errors": result['errors'],
            "diagnostic": exprcc.format_diagnostic(code, err) if err else None,
        }
        return jsonify(response)
    except Exception as e:
        app.logger.exception("unexpected failure compiling %r", code)
        return jsonify(empty_response([f"Unexpected error: {str(e)}"])), 500

if __name__ == "__main__":
    app.run(
        host=os.environ.get("EXPRCC_HOST", "127.0.0.1"),
        port=int(os.environ.get("EXPRCC_PORT", "5000")),
        debug=os.environ.get("EXPRCC_DEBUG", "") not in ("", "0"),
    )
