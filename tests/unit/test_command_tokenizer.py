from dcb.UTILS.command_tokenizer import tokenize_command

def test_shell_form_with_quotes():
    assert tokenize_command("sh -c 'echo hi'") == ["sh", "-c", "echo hi"]
    assert tokenize_command('python -m "my app"') == ["python", "-m", "my app"]

def test_quotes_inside_a_token():
    assert tokenize_command('run --name="a b" x') == ["run", "--name=a b", "x"]

def test_exec_form_json_array():
    assert tokenize_command('["python", "app.py"]') == ["python", "app.py"]
    assert tokenize_command('  ["CMD", "curl", "-f", "http://localhost"]  ') == \
        ["CMD", "curl", "-f", "http://localhost"]

def test_invalid_json_is_tokenized():
    assert tokenize_command("[ broken ]") == ["[", "broken", "]"]

def test_unbalanced_quotes_fall_back_to_whitespace():
    assert tokenize_command('echo "unterminated') == ["echo", '"unterminated']
    assert tokenize_command("echo it's") == ["echo", "it's"]

def test_blank_input():
    assert tokenize_command("") == []
    assert tokenize_command("   \t ") == []
    assert tokenize_command(None) == []
